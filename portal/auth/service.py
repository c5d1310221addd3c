"""
Client Files Portal - Authentication Service

Account creation and the login path:
    Credential Store -> Lockout Engine -> Token Issuer -> Session Registry -> Login History

Route handlers stay thin; every business failure is raised as a
portal.errors.ServiceError subclass.
"""

import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlmodel import Session as DBSession

from portal.auth import history, sessions, store
from portal.auth.lockout import LockoutEngine
from portal.auth.models import Role, User, utcnow
from portal.auth.password import (
    hash_password,
    needs_rehash,
    password_strength_errors,
    verify_password,
)
from portal.config import settings
from portal.errors import (
    AccountDeactivatedError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from portal.logging import get_logger
from portal.notifications import BestEffortNotifier
from portal.notifications import templates


logger = get_logger(__name__)


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str


def ensure_strong_password(password: str) -> None:
    """
    Raises:
        ValidationError: "Weak password" with the failed rules as detail
    """
    errors = password_strength_errors(password)
    if errors:
        raise ValidationError("Weak password", detail=errors)


def ensure_can_assign(role: Role, actor_role: Optional[Role]) -> None:
    """
    Only staff may create accounts above USER, and never above their own role.

    Raises:
        ForbiddenError: Actor may not grant `role`
    """
    if role == Role.USER:
        return
    if actor_role is None or not actor_role.at_least(Role.ADMIN):
        raise ForbiddenError("Insufficient permissions to assign this role")
    if not actor_role.at_least(role):
        raise ForbiddenError("Cannot assign a role above your own")


async def register(
    db: DBSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    role: Role = Role.USER,
    actor_role: Optional[Role] = None,
    notifier: Optional[BestEffortNotifier] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuthResult:
    """
    Create an account and sign the new user in.

    A verification email is sent best-effort; a delivery failure does
    not fail registration.

    Raises:
        ValidationError: Weak password
        ConflictError: Email already registered
        ForbiddenError: Requested role not grantable by the caller
    """
    ensure_strong_password(password)
    ensure_can_assign(role, actor_role)

    verification_token = secrets.token_hex(32)
    user = store.create(
        db,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        email_verification_token=verification_token,
        email_verification_expiry=utcnow()
        + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
    )
    logger.info("user_registered", user_id=str(user.id), role=user.role.value)

    if notifier is not None:
        notifier.notify(templates.email_verification(user, verification_token))

    pair = await sessions.issue_pair(db, user, ip_address, user_agent)
    return AuthResult(user=user, access_token=pair.access_token, refresh_token=pair.refresh_token)


async def login(
    db: DBSession,
    lockout: LockoutEngine,
    email: str,
    password: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AuthResult:
    """
    Authenticate with email and password.

    Order of checks:
    1. Unknown email -> generic invalid credentials (nothing to audit against)
    2. Lock in force -> refused without checking the password
    3. Deactivated account -> refused
    4. Password mismatch -> counted by the lockout engine
    5. Success -> counter and lock cleared, hash upgraded if needed, tokens issued

    Raises:
        InvalidCredentialsError: Unknown email, or wrong password below threshold
        AccountLockedError: Lock in force or threshold reached
        AccountDeactivatedError: Account soft-deleted
    """
    user = store.find_by_email(db, email)
    if not user:
        logger.info("login_unknown_email")
        raise InvalidCredentialsError("Invalid email or password")

    lockout.ensure_not_locked(db, user, ip_address, user_agent)

    if not user.is_active:
        history.log_attempt(
            db, user, False, ip_address, user_agent, history.REASON_DEACTIVATED
        )
        logger.info("login_refused_deactivated", user_id=str(user.id))
        raise AccountDeactivatedError(
            "Account is deactivated. Please contact administrator."
        )

    if not verify_password(password, user.password_hash):
        # Always raises
        await lockout.record_failure(db, user, ip_address, user_agent)

    lockout.record_success(db, user)

    # Upgrade hash if the work factor has been raised since it was stored
    if needs_rehash(user.password_hash):
        store.update_credential_fields(db, user, password_hash=hash_password(password))
        logger.info("password_rehashed", user_id=str(user.id))

    pair = await sessions.issue_pair(db, user, ip_address, user_agent)
    history.log_attempt(db, user, True, ip_address, user_agent)

    logger.info("login_succeeded", user_id=str(user.id), session_id=str(pair.session.id))
    return AuthResult(user=user, access_token=pair.access_token, refresh_token=pair.refresh_token)


async def logout(db: DBSession, refresh_token: Optional[str]) -> None:
    """
    Revoke the session behind a refresh token.

    Raises:
        ValidationError: Token missing or not registered
    """
    if not refresh_token:
        raise ValidationError("Refresh token is required")
    try:
        await sessions.revoke(db, refresh_token)
    except NotFoundError:
        raise ValidationError("Invalid refresh token")


def get_user(db: DBSession, user_id: UUID) -> User:
    """
    Raises:
        NotFoundError: No such user
    """
    user = store.find_by_id(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user
