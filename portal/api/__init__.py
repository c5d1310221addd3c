"""
Client Files Portal - HTTP API Support
"""
