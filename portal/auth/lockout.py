"""
Client Files Portal - Account Lockout Engine

Progressive lockout driven by consecutive password failures.

States per user:
- UNLOCKED(failed_login_attempts)
- LOCKED(locked_until)

A lock whose `locked_until` has passed is treated as UNLOCKED on the
next attempt; nothing sweeps expired locks in the background.

Security:
- A locked account is refused before the password is checked
- The failure counter is incremented with a single UPDATE so concurrent
  failures cannot lose counts
- Every decision is appended to login history with its reason
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session as DBSession

from portal.auth import history
from portal.auth.models import User, utcnow
from portal.config import settings
from portal.errors import AccountLockedError, InvalidCredentialsError
from portal.logging import get_logger
from portal.notifications import BestEffortNotifier
from portal.notifications import templates


logger = get_logger(__name__)


@dataclass(frozen=True)
class LockoutPolicy:
    max_failures: int = 5
    lock_duration: timedelta = timedelta(minutes=30)

    @classmethod
    def from_settings(cls) -> "LockoutPolicy":
        return cls(
            max_failures=settings.MAX_FAILED_LOGINS,
            lock_duration=timedelta(minutes=settings.LOCKOUT_MINUTES),
        )


@dataclass(frozen=True)
class FailureOutcome:
    """Result of applying one password failure to the counter."""
    failed_attempts: int
    locked_until: Optional[datetime]
    max_failures: int

    @property
    def locked(self) -> bool:
        return self.locked_until is not None

    @property
    def attempts_remaining(self) -> int:
        return max(self.max_failures - self.failed_attempts, 0)


def is_locked(user: User, now: Optional[datetime] = None) -> bool:
    """True while the user's lock is still in force."""
    now = now or utcnow()
    return user.locked_until is not None and user.locked_until > now


def remaining_lock_minutes(user: User, now: Optional[datetime] = None) -> int:
    """Whole minutes (rounded up) until the lock lifts; 0 if not locked."""
    now = now or utcnow()
    if not is_locked(user, now):
        return 0
    return math.ceil((user.locked_until - now).total_seconds() / 60)


def evaluate_failure(
    policy: LockoutPolicy,
    failed_attempts: int,
    now: datetime,
) -> FailureOutcome:
    """
    Decide the state after a failure, given the already-incremented counter.

    Reaching the threshold locks the account for `policy.lock_duration`.
    """
    locked_until = None
    if failed_attempts >= policy.max_failures:
        locked_until = now + policy.lock_duration
    return FailureOutcome(
        failed_attempts=failed_attempts,
        locked_until=locked_until,
        max_failures=policy.max_failures,
    )


def _format_unlock_time(locked_until: datetime) -> str:
    return locked_until.strftime("%Y-%m-%d %H:%M UTC")


class LockoutEngine:
    """
    Applies the lockout state machine to one login attempt.

    Only the login path calls into this class. Password reset clears
    lock state directly through the credential store.
    """

    def __init__(
        self,
        notifier: Optional[BestEffortNotifier] = None,
        policy: Optional[LockoutPolicy] = None,
    ) -> None:
        self.notifier = notifier
        self.policy = policy or LockoutPolicy.from_settings()

    def ensure_not_locked(
        self,
        db: DBSession,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """
        Refuse the attempt if the lock is in force.

        Raises:
            AccountLockedError: With the remaining lock time in minutes
        """
        now = utcnow()
        if not is_locked(user, now):
            return

        minutes = remaining_lock_minutes(user, now)
        history.log_attempt(
            db, user, False, ip_address, user_agent, history.REASON_LOCKED
        )
        logger.info("login_refused_locked", user_id=str(user.id), minutes_remaining=minutes)
        raise AccountLockedError(
            f"Account is locked. Please try again in {minutes} minute(s).",
            detail={"lockedUntil": user.locked_until.isoformat(), "minutesRemaining": minutes},
        )

    async def record_failure(
        self,
        db: DBSession,
        user: User,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> FailureOutcome:
        """
        Count a password mismatch and always fail the login.

        Raises:
            AccountLockedError: The failure reached the threshold
            InvalidCredentialsError: Below the threshold, with attempts remaining
        """
        now = utcnow()
        # An expired lock is UNLOCKED(0); counting starts over
        db.execute(
            update(User)
            .where(User.id == user.id, User.locked_until.is_not(None), User.locked_until <= now)
            .values(failed_login_attempts=0, locked_until=None)
        )
        db.execute(
            update(User)
            .where(User.id == user.id)
            .values(failed_login_attempts=User.failed_login_attempts + 1)
        )
        db.commit()
        db.refresh(user)

        outcome = evaluate_failure(self.policy, user.failed_login_attempts, now)

        if outcome.locked:
            user.locked_until = outcome.locked_until
            user.updated_at = now
            db.add(user)
            db.commit()
            db.refresh(user)

        history.log_attempt(
            db, user, False, ip_address, user_agent, history.REASON_INVALID_PASSWORD
        )

        if outcome.locked:
            logger.warning(
                "account_locked",
                user_id=str(user.id),
                failed_attempts=outcome.failed_attempts,
                locked_until=outcome.locked_until.isoformat(),
            )
            if self.notifier is not None:
                self.notifier.notify(templates.account_locked(user, outcome.locked_until))
            raise AccountLockedError(
                "Account locked due to too many failed login attempts. "
                f"Please try again after {_format_unlock_time(outcome.locked_until)}.",
                detail={"lockedUntil": outcome.locked_until.isoformat()},
            )

        remaining = outcome.attempts_remaining
        logger.info(
            "login_failed",
            user_id=str(user.id),
            failed_attempts=outcome.failed_attempts,
            attempts_remaining=remaining,
        )
        raise InvalidCredentialsError(
            f"Invalid email or password. {remaining} attempt(s) remaining"
        )

    def record_success(self, db: DBSession, user: User) -> None:
        """Clear the counter and any lock, expired or not."""
        if user.failed_login_attempts == 0 and user.locked_until is None:
            return
        user.failed_login_attempts = 0
        user.locked_until = None
        user.updated_at = utcnow()
        db.add(user)
        db.commit()
        db.refresh(user)
