"""
Client Files Portal - User Administration Service

Staff operations on user accounts: listing, profile edits, role and
status changes, soft and permanent deletion, and provisioning accounts
with a temporary password.

Security:
- Staff cannot deactivate, delete or re-role their own account
- Deactivation revokes all refresh-token sessions of the user
- Permanent deletion cascades to sessions, login and password history
"""

import math
import secrets
import string
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlmodel import Session as DBSession, select

from portal.auth import sessions, store
from portal.auth.models import Role, User
from portal.auth.password import hash_password
from portal.auth.service import ensure_can_assign, get_user
from portal.errors import ConflictError, ForbiddenError
from portal.logging import get_logger
from portal.notifications import BestEffortNotifier
from portal.notifications import templates


logger = get_logger(__name__)

SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
    "email": User.email,
    "firstName": User.first_name,
    "lastName": User.last_name,
    "role": User.role,
    "lastLoginAt": User.last_login_at,
}

TEMPORARY_PASSWORD_LENGTH = 12


def generate_temporary_password(length: int = TEMPORARY_PASSWORD_LENGTH) -> str:
    """Random password that satisfies the strength policy."""
    rng = secrets.SystemRandom()
    alphabet = string.ascii_letters + string.digits
    chars = [
        rng.choice(string.ascii_uppercase),
        rng.choice(string.ascii_lowercase),
        rng.choice(string.digits),
    ]
    chars += [rng.choice(alphabet) for _ in range(length - len(chars))]
    rng.shuffle(chars)
    return "".join(chars)


def _ensure_not_self(actor_id: UUID, user_id: UUID, action: str) -> None:
    if actor_id == user_id:
        raise ForbiddenError(f"You cannot {action} your own account")


def _escape_like(text: str) -> str:
    """Make `%`, `_` and the escape character match literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_users(
    db: DBSession,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    role: Optional[Role] = None,
    is_active: Optional[bool] = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> dict:
    """
    Page through users.

    Args:
        search: Case-insensitive substring over email, first and last name
        sort_by: One of SORTABLE_FIELDS (unknown values fall back to createdAt)
        sort_order: "asc" or "desc"
    """
    filters = []
    if search:
        pattern = f"%{_escape_like(search.lower())}%"
        filters.append(
            or_(
                func.lower(User.email).like(pattern, escape="\\"),
                func.lower(User.first_name).like(pattern, escape="\\"),
                func.lower(User.last_name).like(pattern, escape="\\"),
            )
        )
    if role is not None:
        filters.append(User.role == role)
    if is_active is not None:
        filters.append(User.is_active == is_active)

    total = db.exec(select(func.count()).select_from(User).where(*filters)).one()

    column = SORTABLE_FIELDS.get(sort_by, User.created_at)
    order = column.asc() if sort_order == "asc" else column.desc()
    users = db.exec(
        select(User)
        .where(*filters)
        .order_by(order)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return {
        "users": users,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def update_user(
    db: DBSession,
    user_id: UUID,
    email: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> User:
    """
    Edit profile fields.

    Raises:
        NotFoundError: No such user
        ConflictError: Email already used by another account
    """
    user = get_user(db, user_id)

    fields = {}
    if email is not None and email != user.email:
        if store.email_taken(db, email, exclude_id=user.id):
            raise ConflictError("Email is already in use")
        fields["email"] = email
    if first_name is not None:
        fields["first_name"] = first_name
    if last_name is not None:
        fields["last_name"] = last_name

    if not fields:
        return user
    return store.update_credential_fields(db, user, **fields)


async def deactivate_user(db: DBSession, actor_id: UUID, user_id: UUID) -> User:
    """Soft delete: mark inactive and revoke every session."""
    _ensure_not_self(actor_id, user_id, "delete")
    user = get_user(db, user_id)
    user = store.update_credential_fields(db, user, is_active=False)
    await sessions.revoke_all(db, user.id)
    logger.info("user_deactivated", user_id=str(user.id), actor_id=str(actor_id))
    return user


def delete_user_permanently(db: DBSession, actor_id: UUID, user_id: UUID) -> None:
    """Remove the user row together with its sessions and history."""
    _ensure_not_self(actor_id, user_id, "delete")
    user = get_user(db, user_id)
    db.delete(user)
    db.commit()
    logger.warning("user_deleted_permanently", user_id=str(user_id), actor_id=str(actor_id))


def change_role(db: DBSession, actor_id: UUID, user_id: UUID, role: Role) -> User:
    _ensure_not_self(actor_id, user_id, "change the role of")
    user = get_user(db, user_id)
    previous = user.role
    user = store.update_credential_fields(db, user, role=role)
    logger.info(
        "user_role_changed",
        user_id=str(user.id),
        actor_id=str(actor_id),
        previous_role=previous.value,
        role=role.value,
    )
    return user


async def set_status(db: DBSession, actor_id: UUID, user_id: UUID, is_active: bool) -> User:
    """Activate or deactivate; deactivation also revokes sessions."""
    if not is_active:
        return await deactivate_user(db, actor_id, user_id)
    user = get_user(db, user_id)
    user = store.update_credential_fields(db, user, is_active=True)
    logger.info("user_activated", user_id=str(user.id), actor_id=str(actor_id))
    return user


def user_stats(db: DBSession) -> dict:
    def count(*filters) -> int:
        return db.exec(select(func.count()).select_from(User).where(*filters)).one()

    total = count()
    active = count(User.is_active == True)  # noqa: E712
    verified = count(User.is_email_verified == True)  # noqa: E712

    rows = db.exec(select(User.role, func.count()).group_by(User.role)).all()
    by_role = {role: 0 for role in Role}
    by_role.update({role: n for role, n in rows})

    return {
        "total": total,
        "active": active,
        "inactive": total - active,
        "verified": verified,
        "unverified": total - verified,
        "by_role": by_role,
    }


async def provision_user(
    db: DBSession,
    actor_role: Role,
    email: str,
    first_name: str,
    last_name: str,
    role: Role = Role.USER,
    notifier: Optional[BestEffortNotifier] = None,
) -> tuple[User, str]:
    """
    Create an account with a temporary password.

    The account is pre-verified and must change its password. The
    provisioning email is best-effort.

    Returns:
        (user, temporary_password)

    Raises:
        ConflictError: Email already registered
        ForbiddenError: Role above the actor's own
    """
    ensure_can_assign(role, actor_role)

    temporary_password = generate_temporary_password()
    user = store.create(
        db,
        email=email,
        password_hash=hash_password(temporary_password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_email_verified=True,
        must_change_password=True,
    )
    logger.info("user_provisioned", user_id=str(user.id), role=role.value)

    if notifier is not None:
        notifier.notify(templates.account_provisioned(user, temporary_password))
    return user, temporary_password
