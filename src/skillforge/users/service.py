"""User profile and directory business logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, or_, select

from skillforge.db.models import FriendRequest, User
from skillforge.exceptions import NotFoundError
from skillforge.social.friend_service import get_friend_ids
from skillforge.storage import ImageKind, delete_image, save_image

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def update_profile(
    db: AsyncSession,
    user: User,
    name: str | None = None,
    bio: str | None = None,
) -> User:
    """Update own profile fields. Only non-None values are applied."""
    if name is not None:
        user.name = name.strip()
    if bio is not None:
        user.bio = bio.strip() or None
    await db.flush()
    logger.info("profile_updated", user_id=user.id)
    return user


async def update_avatar(db: AsyncSession, user: User, image: str) -> User:
    """Store a new profile image and remove the previous upload."""
    path, _ = await save_image(image, ImageKind.PROFILE, user.id)
    previous = user.profile_image
    user.profile_image = path
    await db.flush()
    await delete_image(previous)
    return user


async def search_users(
    db: AsyncSession,
    viewer_id: int,
    query: str | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[User], int]:
    """Directory of everyone except the viewer, optionally filtered by name or email."""
    filters = [User.id != viewer_id]
    if query:
        pattern = f"%{query.strip().lower()}%"
        filters.append(or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern)))

    total = (await db.execute(select(func.count()).select_from(User).where(*filters))).scalar_one()
    result = await db.execute(
        select(User).where(*filters).order_by(User.name, User.id).offset((page - 1) * per_page).limit(per_page)
    )
    return list(result.scalars().all()), total


async def friend_statuses(db: AsyncSession, viewer_id: int, user_ids: list[int]) -> dict[int, str]:
    """Relationship of the viewer to each user: friend, request_sent, request_received or none."""
    friends = set(await get_friend_ids(db, viewer_id))
    result = await db.execute(
        select(FriendRequest.sender_id, FriendRequest.recipient_id).where(
            or_(FriendRequest.sender_id == viewer_id, FriendRequest.recipient_id == viewer_id)
        )
    )
    sent: set[int] = set()
    received: set[int] = set()
    for sender_id, recipient_id in result:
        if sender_id == viewer_id:
            sent.add(recipient_id)
        else:
            received.add(sender_id)

    statuses: dict[int, str] = {}
    for uid in user_ids:
        if uid in friends:
            statuses[uid] = "friend"
        elif uid in sent:
            statuses[uid] = "request_sent"
        elif uid in received:
            statuses[uid] = "request_received"
        else:
            statuses[uid] = "none"
    return statuses
