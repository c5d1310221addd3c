"""
Client Files Portal - Token Issuer & Session Registry

Issues access/refresh token pairs and tracks refresh tokens server-side.
A refresh token is honoured only while its Session row exists and has
not expired, which is what makes refresh tokens revocable.

Security:
- Access tokens are stateless and live until their own expiry
- Refresh does not rotate the refresh token; the Session row is left as is
- Expired rows are deleted lazily on refresh and in bulk by the sweep
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session as DBSession, select

from portal.auth.models import Session, User, utcnow
from portal.auth.tokens import (
    REFRESH_TOKEN,
    InvalidTokenError,
    create_access_token,
    create_refresh_token,
    verify_token,
)
from portal.config import settings
from portal.errors import InternalError, NotFoundError, TokenInvalidError
from portal.logging import get_logger


logger = get_logger(__name__)


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    session: Session


def _access_token_for(user: User) -> str:
    return create_access_token(str(user.id), user.email, user.role.value)


async def issue_pair(
    db: DBSession,
    user: User,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> TokenPair:
    """
    Sign an access/refresh pair and register the refresh token.

    Returns:
        TokenPair with the Session row created for the refresh token
    """
    access_token = _access_token_for(user)
    refresh_token = create_refresh_token(str(user.id), user.email, user.role.value)

    session = Session(
        user_id=user.id,
        token=refresh_token,
        expires_at=utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.add(session)
    db.commit()
    db.refresh(session)

    return TokenPair(access_token=access_token, refresh_token=refresh_token, session=session)


async def refresh(db: DBSession, refresh_token: str) -> str:
    """
    Mint a new access token from a registered refresh token.

    Raises:
        TokenInvalidError (401): No matching Session row, or bad signature
        TokenInvalidError (401): Session row expired (the row is deleted)
    """
    session = db.exec(select(Session).where(Session.token == refresh_token)).first()

    if not session:
        raise TokenInvalidError("Invalid refresh token", status_code=401)

    if session.expires_at < utcnow():
        db.delete(session)
        db.commit()
        logger.info("refresh_token_expired", session_id=str(session.id))
        raise TokenInvalidError(
            "Refresh token expired", status_code=401, error_code="token_expired"
        )

    try:
        verify_token(refresh_token, REFRESH_TOKEN)
    except InvalidTokenError:
        raise TokenInvalidError("Invalid refresh token", status_code=401)

    # Claims come from the current user row, not the refresh token
    return _access_token_for(session.user)


async def revoke(db: DBSession, refresh_token: str) -> None:
    """
    Delete the Session row for a refresh token (logout).

    Raises:
        NotFoundError: No such session
    """
    session = db.exec(select(Session).where(Session.token == refresh_token)).first()
    if not session:
        raise NotFoundError("Session not found")

    db.delete(session)
    db.commit()


def get_session(db: DBSession, session_id: UUID) -> Session:
    """
    Raises:
        NotFoundError: No such session
    """
    session = db.get(Session, session_id)
    if not session:
        raise NotFoundError("Session not found")
    return session


async def revoke_by_id(db: DBSession, session_id: UUID) -> Session:
    """
    Delete one Session row by id.

    Returns:
        The deleted session (for audit context)

    Raises:
        NotFoundError: No such session
    """
    session = get_session(db, session_id)

    db.delete(session)
    db.commit()
    return session


async def revoke_all(
    db: DBSession,
    user_id: UUID,
    except_token: Optional[str] = None,
) -> int:
    """
    Delete every Session row for a user, optionally keeping one.

    Args:
        user_id: Owner whose sessions to delete
        except_token: Refresh token whose session survives

    Returns:
        Number of sessions deleted
    """
    statement = delete(Session).where(Session.user_id == user_id)
    if except_token:
        statement = statement.where(Session.token != except_token)

    result = db.execute(statement)
    db.commit()

    logger.info("sessions_revoked", user_id=str(user_id), count=result.rowcount)
    return result.rowcount


async def sweep_expired(db: DBSession) -> int:
    """
    Delete all Session rows past their expiry.

    Meant for an external periodic trigger; safe alongside normal traffic.

    Returns:
        Number of sessions deleted
    """
    try:
        result = db.execute(delete(Session).where(Session.expires_at < utcnow()))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("expired_sessions_sweep_failed", error=str(e))
        raise InternalError("Session cleanup failed", detail={"count": 0}) from e

    logger.info("expired_sessions_swept", count=result.rowcount)
    return result.rowcount


async def get_user_sessions(db: DBSession, user_id: UUID) -> list[Session]:
    """Live sessions for one user, newest first."""
    statement = (
        select(Session)
        .where(Session.user_id == user_id, Session.expires_at > utcnow())
        .order_by(Session.created_at.desc())
    )
    return db.exec(statement).all()


async def get_all_sessions(db: DBSession) -> list[tuple[Session, User]]:
    """Live sessions across all users with their owners, newest first."""
    statement = (
        select(Session, User)
        .join(User, Session.user_id == User.id)
        .where(Session.expires_at > utcnow())
        .order_by(Session.created_at.desc())
    )
    return db.exec(statement).all()


async def get_session_stats(db: DBSession) -> dict:
    """Counts of all, live and expired-but-unswept sessions."""
    total = db.exec(select(func.count()).select_from(Session)).one()
    active = db.exec(
        select(func.count()).select_from(Session).where(Session.expires_at > utcnow())
    ).one()

    return {
        "total": total,
        "active": active,
        "expired": total - active,
    }
