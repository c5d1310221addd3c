"""
Client Files Portal - Credential Store

Single-row reads and writes of User records.
Callers compose these explicitly; no cross-row transactions are implied.
"""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlmodel import Session as DBSession, select

from portal.auth.models import User, utcnow
from portal.errors import ConflictError


def find_by_email(db: DBSession, email: str) -> Optional[User]:
    """Exact-match lookup on the stored email."""
    return db.exec(select(User).where(User.email == email)).first()


def find_by_id(db: DBSession, user_id: UUID) -> Optional[User]:
    return db.get(User, user_id)


def email_taken(db: DBSession, email: str, exclude_id: Optional[UUID] = None) -> bool:
    """True if another user already holds `email` (compared case-insensitively)."""
    statement = select(User.id).where(func.lower(User.email) == email.lower())
    if exclude_id is not None:
        statement = statement.where(User.id != exclude_id)
    return db.exec(statement).first() is not None


def create(db: DBSession, **fields: Any) -> User:
    """
    Insert a new user.
    
    Raises:
        ConflictError: If the email is already registered
    """
    if email_taken(db, fields["email"]):
        raise ConflictError("User with this email already exists")
    
    user = User(**fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_credential_fields(db: DBSession, user: User, **fields: Any) -> User:
    """Apply a partial update to one user row and persist it."""
    for name, value in fields.items():
        setattr(user, name, value)
    user.updated_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
