"""
Client Files Portal - User Administration Schemas
"""

from typing import Dict, List, Optional

from pydantic import Field

from portal.auth.models import Role
from portal.auth.schemas import CamelModel, EmailAddress, UserResponse


class ProvisionUserRequest(CamelModel):
    """Request body for POST /users (account with a temporary password)."""
    email: EmailAddress = Field(..., max_length=255)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.USER


class ProvisionUserResponse(CamelModel):
    user: UserResponse
    temporary_password: str


class UpdateUserRequest(CamelModel):
    email: Optional[EmailAddress] = Field(default=None, max_length=255)
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)


class ChangeRoleRequest(CamelModel):
    role: Role


class ChangeStatusRequest(CamelModel):
    is_active: bool


class UserListResponse(CamelModel):
    users: List[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class UserStatsResponse(CamelModel):
    total: int
    active: int
    inactive: int
    verified: int
    unverified: int
    by_role: Dict[Role, int]
