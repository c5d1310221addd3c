"""
Client Files Portal - Authentication Database Models

SQLModel-based models for credentials, refresh-token sessions and the
authentication audit trail.
Uses PostgreSQL for production, SQLite for local development.

Security:
- Passwords stored as bcrypt hashes only
- Refresh tokens are only valid while a live Session row exists
- LoginHistory and PasswordHistory are append-only
- All timestamps are naive UTC
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Text, Enum as SQLEnum


def utcnow() -> datetime:
    """Current time as naive UTC, the representation stored in every column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Role(str, Enum):
    """
    User roles ordered by privilege (SUPER_ADMIN highest).

    Use `at_least` for "this privileged or more" checks instead of
    ad hoc membership tests.
    """
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    USER = "USER"

    @property
    def level(self) -> int:
        return _ROLE_LEVELS[self]

    def at_least(self, other: "Role") -> bool:
        """True if this role is as privileged as `other` or more."""
        return self.level >= other.level

    @classmethod
    def at_or_above(cls, minimum: "Role") -> frozenset:
        """All roles at least as privileged as `minimum`."""
        return frozenset(role for role in cls if role.at_least(minimum))


_ROLE_LEVELS = {
    Role.USER: 0,
    Role.MANAGER: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}


class User(SQLModel, table=True):
    """
    Portal account and its credential state.

    Attributes:
        id: Unique identifier (UUIDv4)
        email: Login identifier (unique, stored as given)
        password_hash: bcrypt hash (never store plaintext)
        role: Privilege level
        is_active: Soft-delete flag; inactive users cannot login
        is_email_verified: Set by the verification flow
        failed_login_attempts: Consecutive failures since the last success
        locked_until: Lock expiry; the lock is lifted lazily once passed
        password_reset_token / _expiry: Single active reset token
        email_verification_token / _expiry: Single active verification token
        must_change_password: Set for accounts provisioned with a temporary password
    """
    __tablename__ = "users"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        description="Unique user identifier"
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, index=True, nullable=False),
        description="User email address (login identifier)"
    )
    password_hash: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="bcrypt password hash"
    )
    first_name: str = Field(
        sa_column=Column(String(100), nullable=False),
    )
    last_name: str = Field(
        sa_column=Column(String(100), nullable=False),
    )
    role: Role = Field(
        default=Role.USER,
        sa_column=Column(SQLEnum(Role), nullable=False, default=Role.USER),
        description="User role for RBAC"
    )
    is_active: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, default=True),
        description="Whether user can authenticate"
    )
    is_email_verified: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
    )
    failed_login_attempts: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, default=0),
        description="Consecutive failed logins"
    )
    locked_until: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    last_login_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    last_login_ip: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
    )
    password_reset_token: Optional[str] = Field(
        default=None,
        sa_column=Column(String(128), nullable=True, index=True),
    )
    password_reset_expiry: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    email_verification_token: Optional[str] = Field(
        default=None,
        sa_column=Column(String(128), nullable=True, index=True),
    )
    email_verification_expiry: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime, nullable=True),
    )
    must_change_password: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, default=False),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
        description="Account creation timestamp"
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow),
        description="Last update timestamp"
    )

    # Owned rows are removed with the user on permanent deletion
    sessions: list["Session"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    login_history: list["LoginHistory"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )
    password_history: list["PasswordHistory"] = Relationship(
        back_populates="user",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"},
    )


class Session(SQLModel, table=True):
    """
    Refresh-token session record.

    A live row is the sole proof that a refresh token is valid.
    Rows past `expires_at` are logically dead until swept.

    Attributes:
        id: Unique session identifier (UUIDv4)
        user_id: Owning user
        token: The refresh token string (unique)
        expires_at: Refresh token expiry
        created_at: Login time
        ip_address: Client IP at login
        user_agent: Client user-agent at login
    """
    __tablename__ = "sessions"

    id: UUID = Field(
        default_factory=uuid4,
        primary_key=True,
        description="Unique session identifier"
    )
    user_id: UUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Reference to user"
    )
    token: str = Field(
        sa_column=Column(String(1024), unique=True, index=True, nullable=False),
        description="Refresh token"
    )
    expires_at: datetime = Field(
        sa_column=Column(DateTime, nullable=False, index=True),
        description="Session expiration timestamp"
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
        description="Client IP address"
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(512), nullable=True),
        description="Client user-agent string"
    )

    user: Optional[User] = Relationship(back_populates="sessions")


class LoginHistory(SQLModel, table=True):
    """
    One authentication attempt. Never mutated; removed only by retention cleanup.

    `fail_reason` is one of "Account locked", "Account deactivated",
    "Invalid password", or None for a successful attempt.
    """
    __tablename__ = "login_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    ip_address: Optional[str] = Field(
        default=None,
        sa_column=Column(String(45), nullable=True),
    )
    user_agent: Optional[str] = Field(
        default=None,
        sa_column=Column(String(512), nullable=True),
    )
    success: bool = Field(
        sa_column=Column(Boolean, nullable=False),
    )
    fail_reason: Optional[str] = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow, index=True),
    )

    user: Optional[User] = Relationship(back_populates="login_history")


class PasswordHistory(SQLModel, table=True):
    """Previous password hash, archived on every password change."""
    __tablename__ = "password_history"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="users.id", nullable=False, index=True)
    password_hash: str = Field(
        sa_column=Column(String(255), nullable=False),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime, nullable=False, default=utcnow),
    )

    user: Optional[User] = Relationship(back_populates="password_history")
