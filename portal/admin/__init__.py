"""
Client Files Portal - User Administration
"""
