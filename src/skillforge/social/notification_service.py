"""User notifications: persisted inbox rows, pushed live over WebSocket.

Each notification has a broad ``type`` (progress, social, practice, system)
and a ``subtype`` naming the event. ``notify`` looks the type up from the
subtype; ``create_notification`` takes both explicitly.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.db.models import Notification
from skillforge.social.notification_push import push_notification_to_user

logger = logging.getLogger(__name__)

VALID_TYPES = {"progress", "social", "practice", "system"}

# subtype → type
SUBTYPES: dict[str, str] = {
    "achievement_unlocked": "progress",
    "level_up": "progress",
    "token_earned": "progress",
    "token_redeemed": "progress",
    "friend_request": "social",
    "friend_accepted": "social",
    "new_message": "social",
    "practice_timer_completed": "practice",
}


async def create_notification(
    db: AsyncSession,
    user_id: int,
    type_: str,
    subtype: str,
    title: str,
    description: str | None = None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
    redis: Any | None = None,
) -> Notification:
    """Create a notification and push it via WebSocket."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {VALID_TYPES}")

    notification = Notification(
        user_id=user_id,
        type=type_,
        subtype=subtype,
        title=title,
        description=description,
        action_url=action_url,
        read=False,
        notification_metadata=metadata or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()

    await push_notification_to_user(redis, notification)
    return notification


async def notify(
    db: AsyncSession,
    redis: Any | None,
    user_id: int,
    subtype: str,
    title: str,
    description: str | None = None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    """Shortcut for a known subtype; the type is looked up."""
    return await create_notification(
        db,
        user_id,
        SUBTYPES[subtype],
        subtype,
        title,
        description=description,
        action_url=action_url,
        metadata=metadata,
        redis=redis,
    )


def _unread(user_id: int) -> list[Any]:
    return [Notification.user_id == user_id, Notification.read.is_(False)]


async def _count(db: AsyncSession, filters: list[Any]) -> int:
    return (await db.execute(select(func.count()).select_from(Notification).where(*filters))).scalar_one()


async def _mark_read(db: AsyncSession, filters: list[Any]) -> int:
    result = await db.execute(update(Notification).where(*filters).values(read=True))
    await db.flush()
    return result.rowcount


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """One page of the inbox, newest first, plus the total matching."""
    filters = _unread(user_id) if unread_only else [Notification.user_id == user_id]
    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), await _count(db, filters)


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    return await _count(db, _unread(user_id))


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """False when the notification does not exist or belongs to someone else."""
    return await _mark_read(db, [Notification.id == notification_id, Notification.user_id == user_id]) > 0


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    return await _mark_read(db, _unread(user_id))
