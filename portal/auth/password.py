"""
Client Files Portal - Passwords

bcrypt hashing for stored credentials and the strength rules applied
whenever a user picks a password (register, reset, change).

Security:
- Plaintext passwords are never logged or stored
- Stored hashes below the current cost are upgraded at the next login
"""

import re
from typing import List, Optional

import bcrypt


# bcrypt cost; tests lower it to keep hashing fast
BCRYPT_WORK_FACTOR = 12

# bcrypt only reads the first 72 bytes and rejects longer input
MAX_PASSWORD_BYTES = 72

# (pattern, message) pairs checked in order after the length rules
MIN_PASSWORD_LENGTH = 8
_CHARACTER_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"\d"), "Password must contain at least one digit"),
)


def hash_password(password: str) -> str:
    """Salted bcrypt hash at the current BCRYPT_WORK_FACTOR."""
    digest = bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=BCRYPT_WORK_FACTOR),
    )
    return digest.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Constant-time check of `plain_password` against a stored hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except (ValueError, TypeError):
        return False


def work_factor_of(hashed_password: str) -> Optional[int]:
    """Cost encoded in a `$2b$NN$...` hash, or None if it cannot be read."""
    parts = hashed_password.split("$")
    if len(parts) < 4:
        return None
    try:
        return int(parts[2])
    except ValueError:
        return None


def needs_rehash(hashed_password: str, target_work_factor: Optional[int] = None) -> bool:
    """
    True when the stored hash is weaker than the target cost
    (default BCRYPT_WORK_FACTOR) or unreadable.
    """
    if target_work_factor is None:
        target_work_factor = BCRYPT_WORK_FACTOR
    current = work_factor_of(hashed_password)
    return current is None or current < target_work_factor


def password_strength_errors(password: str) -> List[str]:
    """
    Rules the candidate password breaks; an empty list means it is acceptable.

    Policy: at least 8 characters and at most 72 bytes of UTF-8, with an
    uppercase letter, a lowercase letter and a digit.
    """
    errors = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    errors.extend(message for pattern, message in _CHARACTER_RULES if not pattern.search(password))
    return errors
