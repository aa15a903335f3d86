"""Password hashing, generation and strength checks."""

from __future__ import annotations

import secrets
import string
from typing import List

import bcrypt

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SPECIAL = "!@#$%^&*()_+-=[]{}|;:,.<>?"

MIN_LENGTH = 8


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def generate_secure_password(
    length: int = 12,
    *,
    min_uppercase: int = 2,
    min_lowercase: int = 2,
    min_digits: int = 2,
    min_special: int = 1,
) -> str:
    """
    Generate a random password that satisfies the minimum character-class counts.

    Used for accounts created implicitly during checkout; the result is only
    ever emailed to the account owner.
    """

    required = min_uppercase + min_lowercase + min_digits + min_special
    if length < MIN_LENGTH:
        raise ValueError(f"Password length must be at least {MIN_LENGTH} characters")
    if required > length:
        raise ValueError("Password length is too short for the required character classes")

    chars: List[str] = []
    for alphabet, count in (
        (UPPERCASE, min_uppercase),
        (LOWERCASE, min_lowercase),
        (DIGITS, min_digits),
        (SPECIAL, min_special),
    ):
        chars.extend(secrets.choice(alphabet) for _ in range(count))

    pool = UPPERCASE + LOWERCASE + DIGITS + SPECIAL
    chars.extend(secrets.choice(pool) for _ in range(length - required))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def password_problems(password: str) -> List[str]:
    """Return human-readable reasons the password is too weak (empty when fine)."""

    problems: List[str] = []
    if len(password) < MIN_LENGTH:
        problems.append(f"Password must be at least {MIN_LENGTH} characters long")
    if not any(c in UPPERCASE for c in password):
        problems.append("Password must contain at least one uppercase letter")
    if not any(c in LOWERCASE for c in password):
        problems.append("Password must contain at least one lowercase letter")
    if not any(c in DIGITS for c in password):
        problems.append("Password must contain at least one number")
    if not any(c in SPECIAL for c in password):
        problems.append("Password must contain at least one special character")
    return problems
