"""
Client Files Portal - Login History Routes

Read surface over the authentication audit trail:
- GET  /login-history                 - Own attempts
- GET  /login-history/all             - All attempts (admin)
- GET  /login-history/user/{user_id}  - One user's attempts (owner or admin)
- GET  /login-history/stats           - Own stats; admins may pass userId or omit it for global
- POST /login-history/cleanup         - Retention cleanup (admin)
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session as DBSession

from portal.auth import history
from portal.auth.database import get_db
from portal.auth.dependencies import AuthenticatedUser, get_current_user
from portal.auth.schemas import (
    CountResponse,
    LoginHistoryCleanupRequest,
    LoginHistoryEntry,
    LoginHistoryPage,
    LoginStatsResponse,
)
from portal.gateway.rbac import ADMIN_OR_ABOVE, is_admin, require_owner_or_admin, require_role


router = APIRouter(prefix="/login-history", tags=["login-history"])


class HistoryFilters:
    """Common pagination and filter query parameters."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        success: Optional[bool] = Query(None),
        start_date: Optional[datetime] = Query(None, alias="startDate"),
        end_date: Optional[datetime] = Query(None, alias="endDate"),
    ):
        self.page = page
        self.limit = limit
        self.success = success
        self.start_date = _naive_utc(start_date)
        self.end_date = _naive_utc(end_date)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _page(db: DBSession, user_id: Optional[UUID], filters: HistoryFilters) -> LoginHistoryPage:
    result = history.query_history(
        db,
        user_id=user_id,
        page=filters.page,
        limit=filters.limit,
        success=filters.success,
        start_date=filters.start_date,
        end_date=filters.end_date,
    )
    return LoginHistoryPage(
        entries=[LoginHistoryEntry.model_validate(entry) for entry in result["entries"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
    )


@router.get("", response_model=LoginHistoryPage, summary="Own login history")
async def own_history(
    filters: HistoryFilters = Depends(),
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    return _page(db, user.user_id, filters)


@router.get("/all", response_model=LoginHistoryPage, summary="All login history")
async def all_history(
    filters: HistoryFilters = Depends(),
    user_id: Optional[UUID] = Query(None, alias="userId"),
    user: AuthenticatedUser = Depends(require_role(ADMIN_OR_ABOVE)),
    db: DBSession = Depends(get_db),
):
    return _page(db, user_id, filters)


@router.get("/user/{user_id}", response_model=LoginHistoryPage, summary="One user's login history")
async def user_history(
    user_id: UUID,
    filters: HistoryFilters = Depends(),
    user: AuthenticatedUser = Depends(require_owner_or_admin("user_id")),
    db: DBSession = Depends(get_db),
):
    return _page(db, user_id, filters)


@router.get("/stats", response_model=LoginStatsResponse, summary="Login statistics")
async def login_stats(
    user_id: Optional[UUID] = Query(None, alias="userId"),
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """Non-admins always get their own stats; `userId` is ignored for them."""
    scope = user_id if is_admin(user) else user.user_id
    return LoginStatsResponse(**history.stats(db, scope))


@router.post("/cleanup", response_model=CountResponse, summary="Delete old login history")
async def cleanup_history(
    body: Optional[LoginHistoryCleanupRequest] = None,
    user: AuthenticatedUser = Depends(require_role(ADMIN_OR_ABOVE)),
    db: DBSession = Depends(get_db),
):
    count = history.cleanup(db, body.days_to_keep if body else None)
    return CountResponse(message=f"{count} login history entries deleted", count=count)
