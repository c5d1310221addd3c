"""
Client Files Portal - Session Routes

Refresh-token session management:
- GET    /sessions             - Own live sessions
- GET    /sessions/all         - All live sessions (admin)
- GET    /sessions/stats       - Session counts (admin)
- POST   /sessions/revoke-all  - Revoke own sessions, optionally keeping the current one
- POST   /sessions/cleanup     - Sweep expired sessions (admin)
- DELETE /sessions/{id}        - Revoke one session (owner or admin)
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import Session as DBSession

from portal.auth import sessions
from portal.auth.database import get_db
from portal.auth.dependencies import AuthenticatedUser, get_current_user
from portal.auth.schemas import (
    CountResponse,
    MessageResponse,
    RevokeAllRequest,
    SessionResponse,
    SessionStatsResponse,
    SessionWithUserResponse,
    UserSummary,
)
from portal.errors import ValidationError
from portal.gateway.rbac import ADMIN_OR_ABOVE, ensure_owner_or_admin, require_role
from portal.logging import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.get("", response_model=List[SessionResponse], summary="List own active sessions")
async def list_own_sessions(
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    return [
        SessionResponse.model_validate(session)
        for session in await sessions.get_user_sessions(db, user.user_id)
    ]


@router.get(
    "/all",
    response_model=List[SessionWithUserResponse],
    summary="List all active sessions",
)
async def list_all_sessions(
    user: AuthenticatedUser = Depends(require_role(ADMIN_OR_ABOVE)),
    db: DBSession = Depends(get_db),
):
    results = []
    for session, owner in await sessions.get_all_sessions(db):
        entry = SessionResponse.model_validate(session).model_dump()
        results.append(
            SessionWithUserResponse(**entry, user=UserSummary.model_validate(owner))
        )
    return results


@router.get("/stats", response_model=SessionStatsResponse, summary="Session statistics")
async def session_stats(
    user: AuthenticatedUser = Depends(require_role(ADMIN_OR_ABOVE)),
    db: DBSession = Depends(get_db),
):
    return SessionStatsResponse(**await sessions.get_session_stats(db))


@router.post("/revoke-all", response_model=CountResponse, summary="Revoke own sessions")
async def revoke_all_sessions(
    body: RevokeAllRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """
    Revoke every session of the caller.

    With exceptCurrent, the session belonging to the supplied refresh
    token is kept.
    """
    except_token = None
    if body.except_current:
        if not body.refresh_token:
            raise ValidationError("Refresh token is required to keep the current session")
        except_token = body.refresh_token

    count = await sessions.revoke_all(db, user.user_id, except_token)
    return CountResponse(message=f"{count} session(s) revoked", count=count)


@router.post("/cleanup", response_model=CountResponse, summary="Delete expired sessions")
async def cleanup_sessions(
    user: AuthenticatedUser = Depends(require_role(ADMIN_OR_ABOVE)),
    db: DBSession = Depends(get_db),
):
    count = await sessions.sweep_expired(db)
    return CountResponse(message=f"{count} expired session(s) deleted", count=count)


@router.delete("/{session_id}", response_model=MessageResponse, summary="Revoke one session")
async def revoke_session(
    session_id: UUID,
    user: AuthenticatedUser = Depends(get_current_user),
    db: DBSession = Depends(get_db),
):
    """
    Raises:
        404: Unknown session
        403: Session belongs to another user and caller is not an admin
    """
    session = sessions.get_session(db, session_id)
    ensure_owner_or_admin(user, session.user_id)

    await sessions.revoke_by_id(db, session_id)
    logger.info(
        "session_revoked",
        session_id=str(session_id),
        owner_id=str(session.user_id),
        revoked_by=str(user.user_id),
    )
    return MessageResponse(message="Session revoked successfully")
