"""
Client Files Portal - Security Dependencies

FastAPI dependencies for authentication and for reaching the
per-process collaborators kept on `app.state`.

Usage:
    @router.get("/protected")
    async def protected_route(user: AuthenticatedUser = Depends(get_current_user)):
        ...

Security:
- Access tokens are verified by signature, expiry and type on every request
- No database lookup: an access token stays valid until it expires
- Role and ownership gates (portal.gateway.rbac) build on get_current_user
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from portal.auth.lockout import LockoutEngine
from portal.auth.models import Role
from portal.auth.tokens import InvalidTokenError, TokenPayload, verify_access_token
from portal.errors import AuthenticationError
from portal.notifications import BestEffortNotifier, RequiredNotifier


# HTTP Bearer scheme for JWT extraction
security = HTTPBearer(auto_error=False)


class AuthenticatedUser(BaseModel):
    """
    Identity decoded from a valid access token.

    Available in route handlers via Depends(get_current_user).
    """
    user_id: UUID
    email: str
    role: Role

    @classmethod
    def from_payload(cls, payload: TokenPayload) -> "AuthenticatedUser":
        return cls(user_id=UUID(payload.userId), email=payload.email, role=Role(payload.role))


def _decode(token: str) -> AuthenticatedUser:
    try:
        return AuthenticatedUser.from_payload(verify_access_token(token))
    except (InvalidTokenError, ValueError):
        raise AuthenticationError("Invalid or expired token")


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthenticatedUser:
    """
    Authenticate the request from its bearer token.

    Raises:
        AuthenticationError (401): Token missing, invalid, expired or not an access token
    """
    if not credentials:
        raise AuthenticationError("Access denied. No token provided.")

    user = _decode(credentials.credentials)
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthenticatedUser]:
    """Attach the identity when a valid token is present; never fails the request."""
    if not credentials:
        return None
    try:
        user = _decode(credentials.credentials)
    except AuthenticationError:
        return None
    request.state.user = user
    return user


def get_lockout_engine(request: Request) -> LockoutEngine:
    return request.app.state.lockout_engine


def get_best_effort_notifier(request: Request) -> BestEffortNotifier:
    return request.app.state.best_effort_notifier


def get_required_notifier(request: Request) -> RequiredNotifier:
    return request.app.state.required_notifier


def get_client_ip(request: Request) -> str:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    """Extract user agent from request."""
    return request.headers.get("User-Agent", "unknown")[:512]
