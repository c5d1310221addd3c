"""
Client Files Portal - Password & Token Lifecycle

Single-use, time-boxed tokens for two independent flows, each stored
in its own nullable column pair on the User row:
- password reset (1 hour)
- email verification (24 hours)

Issuing a new token overwrites the previous one, so at most one token
per flow is live for a user.

Security:
- Tokens are 256-bit random hex strings
- Reset requests never reveal whether the email is registered
- New passwords are checked against the most recent password hashes
- A completed reset clears any account lock
"""

import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlmodel import Session as DBSession, select

from portal.auth import store
from portal.auth.models import PasswordHistory, User, utcnow
from portal.auth.password import hash_password, verify_password
from portal.auth.service import ensure_strong_password, get_user
from portal.config import settings
from portal.errors import (
    InvalidCredentialsError,
    PasswordReuseError,
    TokenInvalidError,
    ValidationError,
)
from portal.logging import get_logger
from portal.notifications import BestEffortNotifier, RequiredNotifier
from portal.notifications import templates


logger = get_logger(__name__)


def generate_token() -> str:
    """256 bits of randomness, hex encoded."""
    return secrets.token_hex(32)


def _recent_password_hashes(db: DBSession, user_id: UUID) -> list[str]:
    statement = (
        select(PasswordHistory.password_hash)
        .where(PasswordHistory.user_id == user_id)
        .order_by(PasswordHistory.created_at.desc(), PasswordHistory.id.desc())
        .limit(settings.PASSWORD_HISTORY_DEPTH)
    )
    return db.exec(statement).all()


def ensure_not_reused(db: DBSession, user: User, new_password: str) -> None:
    """
    Raises:
        PasswordReuseError: `new_password` matches a recent password hash
    """
    for old_hash in _recent_password_hashes(db, user.id):
        if verify_password(new_password, old_hash):
            raise PasswordReuseError(
                "Cannot reuse a recent password. Please choose a different password."
            )


def _replace_password(db: DBSession, user: User, new_password: str, **extra_fields) -> User:
    """Archive the current hash, then store the new one with any extra field changes."""
    db.add(PasswordHistory(user_id=user.id, password_hash=user.password_hash))
    return store.update_credential_fields(
        db, user, password_hash=hash_password(new_password), **extra_fields
    )


# =============================================================================
# Password reset
# =============================================================================

async def request_password_reset(
    db: DBSession,
    email: str,
    notifier: RequiredNotifier,
) -> None:
    """
    Issue a reset token and email it.

    Returns normally whether or not the email is registered.

    Raises:
        InternalError: The reset email could not be delivered
    """
    user = store.find_by_email(db, email)
    if not user:
        logger.info("password_reset_unknown_email")
        return

    token = generate_token()
    store.update_credential_fields(
        db,
        user,
        password_reset_token=token,
        password_reset_expiry=utcnow() + timedelta(hours=settings.PASSWORD_RESET_EXPIRE_HOURS),
    )
    logger.info("password_reset_requested", user_id=str(user.id))

    await notifier.notify(templates.password_reset(user, token))


async def reset_password(db: DBSession, token: str, new_password: str) -> User:
    """
    Redeem a reset token.

    Clears the token and force-unlocks the account.

    Raises:
        TokenInvalidError: Unknown or expired token
        ValidationError: Weak password
        PasswordReuseError: Password used recently
    """
    user = db.exec(
        select(User).where(
            User.password_reset_token == token,
            User.password_reset_expiry > utcnow(),
        )
    ).first()
    if not user:
        raise TokenInvalidError("Invalid or expired reset token")

    ensure_strong_password(new_password)
    ensure_not_reused(db, user, new_password)

    user = _replace_password(
        db,
        user,
        new_password,
        password_reset_token=None,
        password_reset_expiry=None,
        failed_login_attempts=0,
        locked_until=None,
    )
    logger.info("password_reset_completed", user_id=str(user.id))
    return user


async def change_password(
    db: DBSession,
    user_id: UUID,
    current_password: str,
    new_password: str,
) -> User:
    """
    Change the password of a signed-in user.

    Also clears `must_change_password` for provisioned accounts.

    Raises:
        NotFoundError: No such user
        InvalidCredentialsError (400): Current password does not match
        ValidationError: Weak password
        PasswordReuseError: Password used recently
    """
    user = get_user(db, user_id)

    if not verify_password(current_password, user.password_hash):
        raise InvalidCredentialsError("Current password is incorrect", status_code=400)

    ensure_strong_password(new_password)
    ensure_not_reused(db, user, new_password)

    user = _replace_password(db, user, new_password, must_change_password=False)
    logger.info("password_changed", user_id=str(user.id))
    return user


# =============================================================================
# Email verification
# =============================================================================

async def send_email_verification(
    db: DBSession,
    user_id: UUID,
    notifier: RequiredNotifier,
) -> None:
    """
    Issue a verification token and email it.

    Raises:
        NotFoundError: No such user
        ValidationError: Email is already verified
        InternalError: The verification email could not be delivered
    """
    user = get_user(db, user_id)
    if user.is_email_verified:
        raise ValidationError("Email is already verified")

    token = generate_token()
    store.update_credential_fields(
        db,
        user,
        email_verification_token=token,
        email_verification_expiry=utcnow()
        + timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
    )
    logger.info("email_verification_sent", user_id=str(user.id))

    await notifier.notify(templates.email_verification(user, token))


async def verify_email(
    db: DBSession,
    token: str,
    notifier: Optional[BestEffortNotifier] = None,
) -> User:
    """
    Redeem a verification token and send the welcome email best-effort.

    Raises:
        TokenInvalidError: Unknown or expired token
    """
    user = db.exec(
        select(User).where(
            User.email_verification_token == token,
            User.email_verification_expiry > utcnow(),
        )
    ).first()
    if not user:
        raise TokenInvalidError("Invalid or expired verification token")

    user = store.update_credential_fields(
        db,
        user,
        is_email_verified=True,
        email_verification_token=None,
        email_verification_expiry=None,
    )
    logger.info("email_verified", user_id=str(user.id))

    if notifier is not None:
        notifier.notify(templates.welcome(user))
    return user
