"""
Client Files Portal - Database Seed Script

Creates the first SUPER_ADMIN account.

The password is taken from SEED_ADMIN_PASSWORD when set; otherwise a
temporary password is generated and must be changed on first login.

Usage:
    python -m scripts.seed_users
"""

import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlmodel import Session, select

from portal.admin.service import generate_temporary_password
from portal.auth.database import get_engine, init_db
from portal.auth.models import Role, User
from portal.auth.password import hash_password, password_strength_errors
from portal.config import settings


DEMO_USERS = [
    ("admin@portal.local", "Admin", "Portal", Role.ADMIN),
    ("manager@portal.local", "Manager", "Portal", Role.MANAGER),
    ("user@portal.local", "User", "Portal", Role.USER),
]


def seed_super_admin(email: str = None) -> None:
    """Create the SUPER_ADMIN account if it does not exist yet."""
    email = email or os.environ.get("SEED_ADMIN_EMAIL", "superadmin@portal.local")
    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)

    with Session(engine) as session:
        existing = session.exec(select(User).where(User.email == email)).first()
        if existing:
            print(f"User {email} already exists.")
            return

        password = os.environ.get("SEED_ADMIN_PASSWORD")
        temporary = password is None
        if temporary:
            password = generate_temporary_password()
        else:
            errors = password_strength_errors(password)
            if errors:
                print("SEED_ADMIN_PASSWORD is too weak:")
                for error in errors:
                    print(f"  - {error}")
                sys.exit(1)

        admin = User(
            email=email,
            password_hash=hash_password(password),
            first_name="Super",
            last_name="Admin",
            role=Role.SUPER_ADMIN,
            is_email_verified=True,
            must_change_password=temporary,
        )
        session.add(admin)
        session.commit()

        print("Super admin created successfully!")
        print(f"  Email: {email}")
        if temporary:
            print(f"  Temporary password: {password}")
            print("  The password must be changed after the first login.")


def seed_demo_users() -> None:
    """Create one demo account per staff role, each with a temporary password."""
    engine = get_engine(settings.DATABASE_URL)
    init_db(engine)

    with Session(engine) as session:
        for email, first_name, last_name, role in DEMO_USERS:
            existing = session.exec(select(User).where(User.email == email)).first()
            if existing:
                print(f"User {email} already exists.")
                continue

            password = generate_temporary_password()
            session.add(
                User(
                    email=email,
                    password_hash=hash_password(password),
                    first_name=first_name,
                    last_name=last_name,
                    role=role,
                    is_email_verified=True,
                    must_change_password=True,
                )
            )
            print(f"Created user: {email} ({role.value}) temporary password: {password}")

        session.commit()


if __name__ == "__main__":
    print("=" * 50)
    print("Client Files Portal - User Seed Script")
    print("=" * 50)

    seed_super_admin()

    if settings.is_production:
        sys.exit(0)

    print()
    response = input("Create demo users for the other roles? (y/n): ")
    if response.lower() == "y":
        seed_demo_users()

    print()
    print("Done!")
