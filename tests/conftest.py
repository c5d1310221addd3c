"""
Client Files Portal - Test Configuration

Pytest fixtures for the account-security core.
Provides an in-memory database, an app wired to it, a recording email
sender, and one user per role.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Generator, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from portal.app import create_app
from portal.auth import password as password_module
from portal.auth.database import init_db
from portal.auth.models import Role, User
from portal.auth.password import hash_password
from portal.gateway.ratelimit import InMemoryRateLimiter, RateLimitResult
from portal.notifications import EmailDeliveryError, EmailMessage


# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite:///:memory:"

DEFAULT_PASSWORD = "Password123"


class RecordingEmailSender:
    """Collects outbound messages; raises on send while `fail` is set."""

    def __init__(self) -> None:
        self.sent: List[EmailMessage] = []
        self.fail = False

    def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise EmailDeliveryError("SMTPServerDisconnected: connection closed")
        self.sent.append(message)

    def of_kind(self, kind: str) -> List[EmailMessage]:
        return [message for message in self.sent if message.kind == kind]


class PermissiveRateLimiter:
    """Never limits; keeps lockout tests independent of rate limiting."""

    def hit(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=limit,
            reset_at=0.0,
            retry_after=0,
        )


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Minimum bcrypt cost so hashing does not dominate test time."""
    monkeypatch.setattr(password_module, "BCRYPT_WORK_FACTOR", 4)


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh test database engine for each test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with Session(test_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


def _build_client(test_engine, email_sender, rate_limiter) -> TestClient:
    app = create_app(engine=test_engine, email_sender=email_sender, rate_limiter=rate_limiter)
    return TestClient(app)


@pytest.fixture(scope="function")
def client(test_engine, email_sender) -> Generator[TestClient, None, None]:
    """Test client with a fresh database and no rate limiting."""
    with _build_client(test_engine, email_sender, PermissiveRateLimiter()) as c:
        yield c


@pytest.fixture(scope="function")
def limited_client(test_engine, email_sender) -> Generator[TestClient, None, None]:
    """Test client enforcing the real in-process rate limits."""
    with _build_client(test_engine, email_sender, InMemoryRateLimiter()) as c:
        yield c


@pytest.fixture
def make_user(db_session):
    """Factory creating a user directly in the database."""
    counter = {"n": 0}

    def _make_user(
        role: Role = Role.USER,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        **fields,
    ) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"{role.value.lower()}{counter['n']}@test.com",
            password_hash=hash_password(password),
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", role.value.title()),
            role=role,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def super_admin(make_user) -> User:
    return make_user(Role.SUPER_ADMIN, email="superadmin@test.com")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(Role.ADMIN, email="admin@test.com")


@pytest.fixture
def manager(make_user) -> User:
    return make_user(Role.MANAGER, email="manager@test.com")


@pytest.fixture
def regular_user(make_user) -> User:
    return make_user(Role.USER, email="user@test.com")


@pytest.fixture
def inactive_user(make_user) -> User:
    return make_user(Role.USER, email="inactive@test.com", is_active=False)


def login_user(client: TestClient, email: str, password: str = DEFAULT_PASSWORD) -> Optional[dict]:
    """Helper function to login and return the response body."""
    response = client.post(
        "/api/auth/login",
        json={"email": email, "password": password},
    )
    return response.json() if response.status_code == 200 else None


def auth_headers(access_token: str) -> dict:
    """Create authorization headers for authenticated requests."""
    return {"Authorization": f"Bearer {access_token}"}


def login_headers(client: TestClient, user: User, password: str = DEFAULT_PASSWORD) -> dict:
    """Login as `user` and return bearer headers."""
    tokens = login_user(client, user.email, password)
    assert tokens is not None, f"login failed for {user.email}"
    return auth_headers(tokens["accessToken"])


def flush_emails(client: TestClient) -> None:
    """Wait for best-effort emails the app handed off to finish sending."""
    client.portal.call(client.app.state.best_effort_notifier.drain)
