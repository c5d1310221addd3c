"""
Client Files Portal - User Administration Routes

- GET    /users                 - List users (admin)
- POST   /users                 - Provision a user with a temporary password (admin)
- GET    /users/stats           - User statistics (admin)
- GET    /users/{id}            - Get one user (admin)
- PUT    /users/{id}            - Update profile fields (admin)
- DELETE /users/{id}            - Soft delete (admin)
- DELETE /users/{id}/permanent  - Permanent delete (super admin)
- PATCH  /users/{id}/role       - Change role (super admin)
- PATCH  /users/{id}/status     - Activate / deactivate (admin)
"""

from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session as DBSession

from portal.admin import service
from portal.admin.schemas import (
    ChangeRoleRequest,
    ChangeStatusRequest,
    ProvisionUserRequest,
    ProvisionUserResponse,
    UpdateUserRequest,
    UserListResponse,
    UserStatsResponse,
)
from portal.auth.database import get_db
from portal.auth.dependencies import AuthenticatedUser, get_best_effort_notifier
from portal.auth.models import Role
from portal.auth.schemas import MessageResponse, UserResponse
from portal.auth.service import get_user
from portal.gateway.rbac import ADMIN_OR_ABOVE, SUPER_ADMIN_ONLY, require_role
from portal.notifications import BestEffortNotifier


router = APIRouter(prefix="/users", tags=["users"])

require_admin = require_role(ADMIN_OR_ABOVE)
require_super_admin = require_role(SUPER_ADMIN_ONLY)


@router.get("", response_model=UserListResponse, summary="List users")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    role: Optional[Role] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    user: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
):
    result = service.list_users(
        db,
        page=page,
        limit=limit,
        search=search,
        role=role,
        is_active=is_active,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in result["users"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
    )


@router.post(
    "",
    response_model=ProvisionUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Provision a user",
)
async def provision_user(
    body: ProvisionUserRequest,
    user: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
    notifier: BestEffortNotifier = Depends(get_best_effort_notifier),
):
    created, temporary_password = await service.provision_user(
        db,
        actor_role=user.role,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        notifier=notifier,
    )
    return ProvisionUserResponse(
        user=UserResponse.model_validate(created),
        temporary_password=temporary_password,
    )


@router.get("/stats", response_model=UserStatsResponse, summary="User statistics")
async def user_stats(
    user: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
):
    return UserStatsResponse(**service.user_stats(db))


@router.get("/{user_id}", response_model=UserResponse, summary="Get user")
async def get_user_by_id(
    user_id: UUID,
    user: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
):
    return UserResponse.model_validate(get_user(db, user_id))


@router.put("/{user_id}", response_model=UserResponse, summary="Update user")
async def update_user(
    user_id: UUID,
    body: UpdateUserRequest,
    user: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
):
    updated = service.update_user(
        db,
        user_id,
        email=body.email,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return UserResponse.model_validate(updated)


@router.delete("/{user_id}", response_model=MessageResponse, summary="Deactivate user")
async def delete_user(
    user_id: UUID,
    user: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
):
    await service.deactivate_user(db, user.user_id, user_id)
    return MessageResponse(message="User deactivated successfully")


@router.delete(
    "/{user_id}/permanent",
    response_model=MessageResponse,
    summary="Permanently delete user",
)
async def delete_user_permanently(
    user_id: UUID,
    user: AuthenticatedUser = Depends(require_super_admin),
    db: DBSession = Depends(get_db),
):
    service.delete_user_permanently(db, user.user_id, user_id)
    return MessageResponse(message="User permanently deleted")


@router.patch("/{user_id}/role", response_model=UserResponse, summary="Change user role")
async def change_role(
    user_id: UUID,
    body: ChangeRoleRequest,
    user: AuthenticatedUser = Depends(require_super_admin),
    db: DBSession = Depends(get_db),
):
    return UserResponse.model_validate(
        service.change_role(db, user.user_id, user_id, body.role)
    )


@router.patch("/{user_id}/status", response_model=UserResponse, summary="Change user status")
async def change_status(
    user_id: UUID,
    body: ChangeStatusRequest,
    user: AuthenticatedUser = Depends(require_admin),
    db: DBSession = Depends(get_db),
):
    updated = await service.set_status(db, user.user_id, user_id, body.is_active)
    return UserResponse.model_validate(updated)
