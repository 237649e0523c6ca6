"""Practice submission, listing and the friends feed."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.config import get_settings
from skillforge.db.models import Achievement, Practice, SkillCategory, SkillProgress, User
from skillforge.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from skillforge.progression.engine import ProgressionResult
from skillforge.progression.service import get_category, local_date, record_practice_progress
from skillforge.social.friend_service import are_friends, get_friend_ids
from skillforge.social.notification_push import publish_user_event
from skillforge.storage import ImageKind, delete_image, save_image

logger = logging.getLogger(__name__)


@dataclass
class PracticeOutcome:
    practice: Practice
    progress: SkillProgress | None = None
    result: ProgressionResult | None = None
    achievements: list[Achievement] = field(default_factory=list)


async def submit_practice(
    db: AsyncSession,
    redis: object,
    user: User,
    category_id: int,
    duration_minutes: int,
    image: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> PracticeOutcome:
    """Store a practice session and, if it qualifies, advance the user's progress.

    A session qualifies when it lasts at least the category's minimum
    duration. Non-qualifying sessions are stored but leave progress untouched.
    The stored image is removed again if recording fails. The caller commits.
    """
    if duration_minutes <= 0:
        raise ValidationFailedError("Duration must be positive")
    category = await get_category(db, category_id)
    if now is None:
        now = datetime.now(timezone.utc)

    image_path, _ = await save_image(image, ImageKind.PRACTICE, user.id)
    try:
        return await _record_practice(db, redis, user, category, duration_minutes, image_path, notes, now)
    except Exception:
        await delete_image(image_path)
        raise


async def _record_practice(
    db: AsyncSession,
    redis: object,
    user: User,
    category: SkillCategory,
    duration_minutes: int,
    image_path: str,
    notes: str | None,
    now: datetime,
) -> PracticeOutcome:
    settings = get_settings()
    qualifying = duration_minutes >= category.minimum_duration

    practice = Practice(
        user_id=user.id,
        skill_category_id=category.id,
        duration=duration_minutes,
        image=image_path,
        notes=notes,
        qualifying=qualifying,
        created_at=now,
    )
    practice.user = user
    practice.category = category
    db.add(practice)
    await db.flush()

    outcome = PracticeOutcome(practice=practice)
    if qualifying:
        outcome.progress, outcome.result, outcome.achievements = await record_practice_progress(
            db,
            redis,
            user.id,
            category,
            duration_minutes,
            local_date(now, settings.practice_timezone),
            token_interval=settings.token_reward_interval,
        )
    else:
        logger.info(
            "Practice %d below minimum duration (%d < %d), progress unchanged",
            practice.id, duration_minutes, category.minimum_duration,
        )

    for friend_id in await get_friend_ids(db, user.id):
        await publish_user_event(
            redis,
            friend_id,
            "friend_practice",
            {
                "practice_id": practice.id,
                "user_id": user.id,
                "user_name": user.name,
                "skill_category": category.name,
                "duration": duration_minutes,
                "image": image_path,
            },
            channel="feed",
        )

    return outcome


def _paginate(stmt, page: int, per_page: int):  # type: ignore[no-untyped-def]
    return (
        stmt.order_by(Practice.created_at.desc(), Practice.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )


async def list_user_practices(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
    category_id: int | None = None,
) -> tuple[list[Practice], int]:
    """Own practices, newest first, optionally for one category."""
    filters = [Practice.user_id == user_id]
    if category_id is not None:
        filters.append(Practice.skill_category_id == category_id)

    total = (await db.execute(select(func.count()).select_from(Practice).where(*filters))).scalar_one()
    result = await db.execute(_paginate(select(Practice).where(*filters), page, per_page))
    return list(result.unique().scalars().all()), total


async def get_practice(db: AsyncSession, viewer: User, practice_id: int) -> Practice:
    """Fetch a practice visible to ``viewer`` (the owner or one of their friends)."""
    practice = await db.get(Practice, practice_id)
    if practice is None:
        raise NotFoundError("Practice not found")
    if practice.user_id != viewer.id and not await are_friends(db, viewer.id, practice.user_id):
        raise PermissionDeniedError("Not authorized to view this practice")
    return practice


async def friends_feed(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Practice], int]:
    """Own and friends' practices, newest first."""
    user_ids = [user_id, *await get_friend_ids(db, user_id)]
    where = Practice.user_id.in_(user_ids)

    total = (await db.execute(select(func.count()).select_from(Practice).where(where))).scalar_one()
    result = await db.execute(_paginate(select(Practice).where(where), page, per_page))
    return list(result.unique().scalars().all()), total
