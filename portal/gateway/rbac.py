"""
Client Files Portal - Role-Based Access Control (RBAC)

Role and ownership gates layered on top of authentication.

Chain for a protected route, evaluated in order:
    get_current_user -> require_role(...) -> require_owner_or_admin(...)

Each gate declares get_current_user as its own dependency, so a missing
or expired token always fails with 401 before any role is looked at.
The first failing gate ends the request.

Security:
- Role sets are derived from the total order on Role
- Deny-by-default: roles outside the allowed set get 403
"""

from typing import Iterable
from uuid import UUID

from fastapi import Depends, Request

from portal.auth.dependencies import AuthenticatedUser, get_current_user
from portal.auth.models import Role
from portal.errors import ForbiddenError
from portal.logging import get_logger


logger = get_logger(__name__)


SUPER_ADMIN_ONLY = frozenset({Role.SUPER_ADMIN})
ADMIN_OR_ABOVE = Role.at_or_above(Role.ADMIN)
MANAGER_OR_ABOVE = Role.at_or_above(Role.MANAGER)


def is_admin(user: AuthenticatedUser) -> bool:
    return user.role in ADMIN_OR_ABOVE


def require_role(allowed: Iterable[Role]):
    """
    Dependency factory rejecting roles outside `allowed`.

    Usage:
        @router.get("/stats")
        async def stats(user: AuthenticatedUser = Depends(require_role(ADMIN_OR_ABOVE))):
            ...

    Raises:
        ForbiddenError (403): Authenticated role not in `allowed`
    """
    allowed = frozenset(allowed)

    async def role_gate(
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        if user.role not in allowed:
            logger.info(
                "access_denied_role",
                user_id=str(user.user_id),
                role=user.role.value,
                allowed=sorted(role.value for role in allowed),
            )
            raise ForbiddenError("Access denied. Insufficient permissions.")
        return user

    return role_gate


def ensure_owner_or_admin(user: AuthenticatedUser, owner_id: UUID) -> None:
    """
    Raises:
        ForbiddenError (403): Caller is neither the owner nor AdminOrAbove
    """
    if is_admin(user) or user.user_id == owner_id:
        return
    logger.info(
        "access_denied_ownership",
        user_id=str(user.user_id),
        owner_id=str(owner_id),
    )
    raise ForbiddenError("Access denied. You can only access your own resources.")


def require_owner_or_admin(param: str = "user_id"):
    """
    Dependency factory for routes whose path carries the owner's id.

    Args:
        param: Name of the path parameter holding the owner id
    """
    async def owner_gate(
        request: Request,
        user: AuthenticatedUser = Depends(get_current_user),
    ) -> AuthenticatedUser:
        raw = request.path_params.get(param)
        try:
            owner_id = UUID(str(raw))
        except ValueError:
            raise ForbiddenError("Access denied. You can only access your own resources.")
        ensure_owner_or_admin(user, owner_id)
        return user

    return owner_gate
