"""Account passwords: argon2id hashes and the registration strength policy."""

from __future__ import annotations

from collections.abc import Callable

import argon2
from argon2.exceptions import InvalidHashError, VerificationError

from skillforge.config import get_settings

_hasher = argon2.PasswordHasher(type=argon2.Type.ID)


class PasswordStrengthError(ValueError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True if ``password`` matches. A malformed stored hash counts as a mismatch."""
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    return _hasher.check_needs_rehash(password_hash)


# Each rule: (passes?, message). Length bounds come from settings.
_CHARACTER_RULES: list[tuple[Callable[[str], bool], str]] = [
    (lambda p: any(c.isalpha() for c in p), "Password must contain at least one letter"),
    (lambda p: any(c.isdigit() for c in p), "Password must contain at least one digit"),
]


def validate_password_strength(password: str) -> None:
    """Raise PasswordStrengthError with the first rule the password breaks."""
    settings = get_settings()
    if not password.strip():
        raise PasswordStrengthError("Password cannot be empty")
    if len(password) < settings.password_min_length:
        raise PasswordStrengthError(f"Password must be at least {settings.password_min_length} characters")
    if len(password) > settings.password_max_length:
        raise PasswordStrengthError(f"Password must not exceed {settings.password_max_length} characters")
    for passes, message in _CHARACTER_RULES:
        if not passes(password):
            raise PasswordStrengthError(message)
