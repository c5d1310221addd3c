"""
Client Files Portal - Authentication Package

Account-security core:
- bcrypt password hashing with strength policy
- JWT access tokens, refresh tokens tracked as server-side sessions
- progressive account lockout
- password reset and email verification tokens
- login history audit trail
"""
