"""
Client Files Portal - Account Lockout Tests

Run with: pytest tests/test_lockout.py -v
"""

from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from portal.auth import service as auth_service
from portal.auth.lockout import (
    LockoutPolicy,
    evaluate_failure,
    is_locked,
    remaining_lock_minutes,
)
from portal.auth.models import LoginHistory, User, utcnow
from tests.conftest import DEFAULT_PASSWORD, flush_emails, login_user


WRONG_PASSWORD = "WrongPassword1"


def attempt(client, email, password=WRONG_PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


# =============================================================================
# PURE STATE MACHINE
# =============================================================================

class TestEvaluateFailure:

    def test_below_threshold_not_locked(self):
        now = datetime(2024, 1, 1, 12, 0)

        outcome = evaluate_failure(LockoutPolicy(), 3, now)

        assert outcome.locked is False
        assert outcome.attempts_remaining == 2

    def test_threshold_locks_for_duration(self):
        now = datetime(2024, 1, 1, 12, 0)

        outcome = evaluate_failure(LockoutPolicy(), 5, now)

        assert outcome.locked is True
        assert outcome.locked_until == now + timedelta(minutes=30)
        assert outcome.attempts_remaining == 0

    def test_custom_policy(self):
        now = datetime(2024, 1, 1, 12, 0)
        policy = LockoutPolicy(max_failures=2, lock_duration=timedelta(minutes=5))

        outcome = evaluate_failure(policy, 2, now)

        assert outcome.locked_until == now + timedelta(minutes=5)

    def test_lock_helpers(self):
        now = datetime(2024, 1, 1, 12, 0)
        user = User(
            email="x@test.com",
            password_hash="x",
            first_name="X",
            last_name="Y",
            locked_until=now + timedelta(minutes=10, seconds=1),
        )

        assert is_locked(user, now) is True
        assert remaining_lock_minutes(user, now) == 11
        assert is_locked(user, now + timedelta(minutes=11)) is False
        assert remaining_lock_minutes(user, now + timedelta(minutes=11)) == 0


# =============================================================================
# LOGIN PATH
# =============================================================================

class TestLockoutFlow:

    def test_attempts_remaining_message(self, client, regular_user):
        response = attempt(client, regular_user.email)

        assert response.status_code == 401
        assert response.json()["error"] == "Invalid email or password. 4 attempt(s) remaining"

        response = attempt(client, regular_user.email)
        assert response.json()["error"].endswith("3 attempt(s) remaining")

    def test_fifth_failure_locks_account(self, client, db_session, regular_user):
        for _ in range(4):
            attempt(client, regular_user.email)

        response = attempt(client, regular_user.email)

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "account_locked"
        assert body["error"].startswith(
            "Account locked due to too many failed login attempts. Please try again after "
        )
        assert body["error"].endswith(" UTC.")

        db_session.refresh(regular_user)
        assert regular_user.failed_login_attempts == 5
        assert regular_user.locked_until > utcnow() + timedelta(minutes=29)

    def test_locked_account_refuses_correct_password_without_checking(
        self, client, monkeypatch, regular_user
    ):
        for _ in range(5):
            attempt(client, regular_user.email)

        calls = []
        real_verify = auth_service.verify_password

        def spy(plain, hashed):
            calls.append(plain)
            return real_verify(plain, hashed)

        monkeypatch.setattr(auth_service, "verify_password", spy)

        response = attempt(client, regular_user.email, DEFAULT_PASSWORD)

        assert response.status_code == 401
        assert response.json()["error"] == "Account is locked. Please try again in 30 minute(s)."
        assert response.json()["details"]["minutesRemaining"] == 30
        assert calls == []

    def test_expired_lock_allows_login_and_resets(self, client, db_session, make_user):
        user = make_user(
            email="expired@test.com",
            failed_login_attempts=5,
            locked_until=utcnow() - timedelta(minutes=1),
        )

        assert login_user(client, user.email) is not None

        db_session.refresh(user)
        assert user.failed_login_attempts == 0
        assert user.locked_until is None

    def test_expired_lock_restarts_count_on_wrong_password(self, client, db_session, make_user):
        user = make_user(
            email="expired@test.com",
            failed_login_attempts=5,
            locked_until=utcnow() - timedelta(minutes=1),
        )

        response = attempt(client, user.email)

        assert response.status_code == 401
        assert response.json()["code"] == "invalid_credentials"
        assert response.json()["error"] == "Invalid email or password. 4 attempt(s) remaining"

        db_session.refresh(user)
        assert user.failed_login_attempts == 1
        assert user.locked_until is None

    def test_success_resets_counter(self, client, db_session, regular_user):
        attempt(client, regular_user.email)
        attempt(client, regular_user.email)

        assert login_user(client, regular_user.email) is not None

        db_session.refresh(regular_user)
        assert regular_user.failed_login_attempts == 0

        response = attempt(client, regular_user.email)
        assert response.json()["error"].endswith("4 attempt(s) remaining")

    def test_lock_sends_notification(self, client, email_sender, regular_user):
        for _ in range(5):
            attempt(client, regular_user.email)

        flush_emails(client)
        sent = email_sender.of_kind("account_locked")
        assert len(sent) == 1
        assert sent[0].to == regular_user.email
        assert sent[0].subject == "Account Temporarily Locked"

    def test_lock_response_unchanged_when_email_fails(self, client, email_sender, regular_user):
        email_sender.fail = True
        for _ in range(4):
            attempt(client, regular_user.email)

        response = attempt(client, regular_user.email)

        assert response.status_code == 401
        assert response.json()["code"] == "account_locked"
        flush_emails(client)
        assert email_sender.sent == []

    def test_history_reasons(self, client, db_session, regular_user):
        for _ in range(6):
            attempt(client, regular_user.email)

        reasons = [
            entry.fail_reason
            for entry in db_session.exec(
                select(LoginHistory)
                .where(LoginHistory.user_id == regular_user.id)
                .order_by(LoginHistory.created_at)
            ).all()
        ]
        assert reasons == ["Invalid password"] * 5 + ["Account locked"]

    def test_unknown_email_not_recorded(self, client, db_session):
        attempt(client, "nobody@test.com")

        assert db_session.exec(select(LoginHistory)).all() == []

    def test_locked_check_precedes_deactivated(self, client, make_user):
        user = make_user(
            email="both@test.com",
            is_active=False,
            locked_until=utcnow() + timedelta(minutes=10),
        )

        response = attempt(client, user.email, DEFAULT_PASSWORD)

        assert response.json()["code"] == "account_locked"


@pytest.mark.asyncio
async def test_failures_counted_in_database(db_session, regular_user):
    """Each failure is an SQL increment, so the stored count is authoritative."""
    from portal.auth.lockout import LockoutEngine
    from portal.errors import AuthenticationError

    engine = LockoutEngine()
    user = db_session.get(User, regular_user.id)

    for _ in range(3):
        with pytest.raises(AuthenticationError):
            await engine.record_failure(db_session, user)

    db_session.refresh(regular_user)
    assert regular_user.failed_login_attempts == 3
