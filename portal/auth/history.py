"""
Client Files Portal - Login History

Append-only record of authentication attempts plus the read surface
used by dashboards and admin tooling:
- paginated queries (per user or global), newest first
- aggregate statistics
- retention cleanup

Cleanup is a delete-by-predicate and is safe to run alongside traffic.
"""

import math
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session as DBSession, select

from portal.auth.models import LoginHistory, User, utcnow
from portal.config import settings
from portal.errors import InternalError
from portal.logging import get_logger


logger = get_logger(__name__)

# Failure reasons recorded on LoginHistory.fail_reason
REASON_LOCKED = "Account locked"
REASON_DEACTIVATED = "Account deactivated"
REASON_INVALID_PASSWORD = "Invalid password"


def log_attempt(
    db: DBSession,
    user: User,
    success: bool,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    fail_reason: Optional[str] = None,
) -> LoginHistory:
    """
    Append one attempt to the audit trail.
    
    A successful attempt also records last-login time and IP on the user.
    """
    entry = LoginHistory(
        user_id=user.id,
        ip_address=ip_address,
        user_agent=user_agent,
        success=success,
        fail_reason=None if success else fail_reason,
    )
    db.add(entry)
    
    if success:
        user.last_login_at = entry.created_at
        user.last_login_ip = ip_address
        db.add(user)
    
    db.commit()
    db.refresh(entry)
    return entry


def _filtered(statement, user_id, success, start_date, end_date):
    if user_id is not None:
        statement = statement.where(LoginHistory.user_id == user_id)
    if success is not None:
        statement = statement.where(LoginHistory.success == success)
    if start_date is not None:
        statement = statement.where(LoginHistory.created_at >= start_date)
    if end_date is not None:
        statement = statement.where(LoginHistory.created_at <= end_date)
    return statement


def query_history(
    db: DBSession,
    user_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
    success: Optional[bool] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> dict:
    """
    Page through login attempts, newest first.
    
    Args:
        user_id: Restrict to one user (None for all users)
        page: 1-based page number
        limit: Page size
        success: Filter on outcome
        start_date / end_date: Inclusive created_at bounds
        
    Returns:
        Dict with entries, total, page, limit, totalPages
    """
    count_statement = _filtered(
        select(func.count()).select_from(LoginHistory),
        user_id, success, start_date, end_date,
    )
    total = db.exec(count_statement).one()
    
    statement = _filtered(select(LoginHistory), user_id, success, start_date, end_date)
    statement = (
        statement
        .order_by(LoginHistory.created_at.desc(), LoginHistory.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    entries = db.exec(statement).all()
    
    return {
        "entries": entries,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def stats(db: DBSession, user_id: Optional[UUID] = None) -> dict:
    """Totals, success rate (percent, 2 dp) and attempts in the last 7 days."""
    def count(**filters) -> int:
        statement = _filtered(
            select(func.count()).select_from(LoginHistory),
            user_id,
            filters.get("success"),
            filters.get("since"),
            None,
        )
        return db.exec(statement).one()
    
    total = count()
    successful = count(success=True)
    failed = count(success=False)
    recent = count(since=utcnow() - timedelta(days=7))
    
    return {
        "total": total,
        "successful": successful,
        "failed": failed,
        "success_rate": round(successful / total * 100, 2) if total else 0.0,
        "recent_logins": recent,
    }


def cleanup(db: DBSession, days_to_keep: Optional[int] = None) -> int:
    """
    Delete attempts older than `days_to_keep` (default LOGIN_HISTORY_RETENTION_DAYS).
    
    Returns:
        Number of rows deleted

    Raises:
        InternalError: The delete failed; nothing was removed
    """
    if days_to_keep is None:
        days_to_keep = settings.LOGIN_HISTORY_RETENTION_DAYS
    cutoff = utcnow() - timedelta(days=days_to_keep)
    
    try:
        result = db.execute(delete(LoginHistory).where(LoginHistory.created_at < cutoff))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("login_history_cleanup_failed", error=str(e))
        raise InternalError("Login history cleanup failed", detail={"count": 0}) from e
    
    logger.info("login_history_cleanup", deleted=result.rowcount, days_to_keep=days_to_keep)
    return result.rowcount
