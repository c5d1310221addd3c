"""
Client Files Portal - Authentication Request/Response Schemas

Pydantic models for API request validation and response serialization.
Separates API contracts from database models.

JSON field names are camelCase on the wire (`accessToken`, `firstName`);
Python attributes stay snake_case.
"""

import re
from datetime import datetime
from typing import Annotated, Dict, List, Optional
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from portal.auth.models import Role


_EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$")


def check_email(value: str) -> str:
    """Basic email format validation (allows .local for development)."""
    value = value.strip()
    if not _EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


EmailAddress = Annotated[str, AfterValidator(check_email)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# Requests
# =============================================================================

class RegisterRequest(CamelModel):
    """Request body for POST /auth/register."""
    email: EmailAddress = Field(..., max_length=255)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: Optional[Role] = None


class LoginRequest(CamelModel):
    """Request body for POST /auth/login."""
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    """Request body for POST /auth/refresh."""
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(CamelModel):
    """Request body for POST /auth/logout; a missing token is a 400."""
    refresh_token: Optional[str] = None


class ForgotPasswordRequest(CamelModel):
    email: EmailAddress


class ResetPasswordRequest(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class VerifyEmailRequest(CamelModel):
    token: str = Field(..., min_length=1)


class RevokeAllRequest(CamelModel):
    """
    Request body for POST /sessions/revoke-all.

    With exceptCurrent, the session of `refreshToken` survives.
    """
    except_current: bool = False
    refresh_token: Optional[str] = None


class LoginHistoryCleanupRequest(CamelModel):
    days_to_keep: Optional[int] = Field(default=None, ge=1)


# =============================================================================
# Responses
# =============================================================================

class MessageResponse(CamelModel):
    message: str


class CountResponse(CamelModel):
    message: str
    count: int


class UserResponse(CamelModel):
    """Public view of a user; never includes hashes or tokens."""
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    is_active: bool
    is_email_verified: bool
    must_change_password: bool
    last_login_at: Optional[datetime] = None
    last_login_ip: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class UserSummary(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role


class AuthResponse(CamelModel):
    """Response body for register and login."""
    user: UserResponse
    access_token: str
    refresh_token: str


class AccessTokenResponse(CamelModel):
    access_token: str
    expires_in: int


class SessionResponse(CamelModel):
    id: UUID
    user_id: UUID
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime
    expires_at: datetime


class SessionWithUserResponse(SessionResponse):
    user: UserSummary


class SessionStatsResponse(CamelModel):
    total: int
    active: int
    expired: int


class LoginHistoryEntry(CamelModel):
    id: int
    user_id: UUID
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    success: bool
    fail_reason: Optional[str] = None
    created_at: datetime


class LoginHistoryPage(CamelModel):
    entries: List[LoginHistoryEntry]
    total: int
    page: int
    limit: int
    total_pages: int


class LoginStatsResponse(CamelModel):
    total: int
    successful: int
    failed: int
    success_rate: float
    recent_logins: int


class ErrorResponse(CamelModel):
    error: str
    code: str
    details: Optional[Dict | List] = None
