"""
Client Files Portal - Request Gateway

Cross-cutting request handling: role and ownership gates, rate limiting,
and the security middleware.
"""
