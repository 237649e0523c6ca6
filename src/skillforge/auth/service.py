"""Accounts: registration and password login."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from skillforge.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from skillforge.config import get_settings
from skillforge.db.models import User
from skillforge.exceptions import ConflictError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

DEFAULT_PROFILE_IMAGE = "default-profile.png"


class InvalidCredentialsError(ValueError):
    """Unknown email or wrong password."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(func.lower(User.email) == normalize_email(email)))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, name: str, email: str, password: str) -> User:
    """Create an account. Registering counts as the first login.

    Raises:
        PasswordStrengthError: weak password.
        ConflictError: the email is already registered.
    """
    validate_password_strength(password)
    email = normalize_email(email)
    if await get_user_by_email(db, email) is not None:
        raise ConflictError("Email already registered")

    now = datetime.now(timezone.utc)
    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        profile_image=DEFAULT_PROFILE_IMAGE,
        is_admin=email in {normalize_email(e) for e in get_settings().admin_emails},
        created_at=now,
        last_login=now,
        login_count=1,
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, is_admin=user.is_admin)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
    """Check the password and record the login.

    Unknown email and wrong password raise the same InvalidCredentialsError.
    """
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("login_failed")
        raise InvalidCredentialsError("Invalid email or password")

    user.last_login = datetime.now(timezone.utc)
    user.login_count = (user.login_count or 0) + 1
    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
    await db.flush()
    logger.info("user_login", user_id=user.id, login_count=user.login_count)
    return user
