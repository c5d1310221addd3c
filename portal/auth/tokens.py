"""
Client Files Portal - JWT Token Management

Signs and verifies the two credentials handed to clients:
- Access token: {userId, email, role}, 7 days, stateless
- Refresh token: same claims, 30 days, only honoured while a Session row exists

Security:
- HS256 with SECRET_KEY
- Access tokens cannot be revoked before expiry; refresh tokens can
- jti makes every issued token unique (Session.token is a unique column)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import secrets

from jose import jwt, JWTError
from pydantic import BaseModel, Field

from portal.config import settings


ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"


class TokenPayload(BaseModel):
    """
    JWT token payload structure.
    
    Attributes:
        userId: User ID
        email: User email at issue time
        role: User role at issue time
        exp: Expiration timestamp
        iat: Issued-at timestamp
        jti: Unique token ID
        typ: "access" or "refresh"
    """
    userId: str = Field(..., description="User ID")
    email: str = Field(..., description="User email")
    role: str = Field(..., description="User role")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime = Field(..., description="Issued at time")
    jti: str = Field(..., description="Token ID")
    typ: str = Field(default=ACCESS_TOKEN, description="Token type")


class InvalidTokenError(Exception):
    """Raised when JWT validation fails."""
    pass


def _encode(
    user_id: str,
    email: str,
    role: str,
    token_type: str,
    expires_delta: timedelta,
) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "userId": str(user_id),
        "email": email,
        "role": role,
        "exp": now + expires_delta,
        "iat": now,
        "jti": secrets.token_hex(16),
        "typ": token_type,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.
    
    Args:
        user_id: User's unique identifier
        email: User's email
        role: User's role
        expires_delta: Optional custom lifetime (default ACCESS_TOKEN_EXPIRE_DAYS)
        
    Returns:
        Encoded JWT string
    """
    if expires_delta is None:
        expires_delta = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)
    return _encode(user_id, email, role, ACCESS_TOKEN, expires_delta)


def create_refresh_token(
    user_id: str,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed refresh token (default REFRESH_TOKEN_EXPIRE_DAYS)."""
    if expires_delta is None:
        expires_delta = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode(user_id, email, role, REFRESH_TOKEN, expires_delta)


def verify_token(token: str, expected_type: str = ACCESS_TOKEN) -> TokenPayload:
    """
    Verify and decode a JWT.
    
    Args:
        token: Encoded JWT string
        expected_type: "access" or "refresh"
        
    Returns:
        Decoded TokenPayload
        
    Raises:
        InvalidTokenError: If token is invalid, expired, malformed or of the wrong type
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
        decoded = TokenPayload(**payload)
    except (JWTError, ValueError) as e:
        raise InvalidTokenError(f"Token validation failed: {str(e)}")
    
    if decoded.typ != expected_type:
        raise InvalidTokenError(f"Expected {expected_type} token, got {decoded.typ}")
    
    return decoded


def verify_access_token(token: str) -> TokenPayload:
    """Verify an access token (signature, expiry and type)."""
    return verify_token(token, ACCESS_TOKEN)


def get_token_expiry_seconds() -> int:
    """Access token lifetime in seconds for responses."""
    return settings.ACCESS_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
