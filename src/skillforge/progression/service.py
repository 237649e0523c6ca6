"""Progress persistence: applies the progression engine to stored records."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.config import get_settings
from skillforge.db.models import Achievement, SkillCategory, SkillProgress, UserAchievement
from skillforge.exceptions import ConflictError, NotFoundError, ValidationFailedError
from skillforge.progression.achievements import AchievementIndex, AchievementType
from skillforge.progression.engine import (
    TOKEN_REWARD_INTERVAL,
    ProgressionResult,
    ProgressSnapshot,
    advance,
)
from skillforge.progression.thresholds import SkillLevel, ThresholdTable
from skillforge.social.notification_service import notify

logger = logging.getLogger(__name__)


def local_date(moment: datetime, tz_name: str = "UTC") -> date:
    """Calendar date of ``moment`` in the given IANA timezone."""
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz).date()


# ---------------------------------------------------------------------------
# Skill categories
# ---------------------------------------------------------------------------


async def list_categories(db: AsyncSession) -> list[SkillCategory]:
    result = await db.execute(select(SkillCategory).order_by(SkillCategory.name))
    return list(result.scalars().all())


async def get_category(db: AsyncSession, category_id: int) -> SkillCategory:
    """Fetch a skill category. Raises NotFoundError."""
    category = await db.get(SkillCategory, category_id)
    if category is None:
        raise NotFoundError("Skill category not found")
    return category


async def create_category(
    db: AsyncSession,
    name: str,
    description: str,
    icon: str | None = None,
    minimum_duration: int | None = None,
    thresholds: ThresholdTable | None = None,
) -> SkillCategory:
    """Create a skill category. Raises ConflictError on a duplicate name."""
    table = thresholds or ThresholdTable()
    existing = await db.execute(select(SkillCategory).where(SkillCategory.name == name))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Skill category already exists")

    category = SkillCategory(
        name=name,
        description=description,
        icon=icon,
        minimum_duration=minimum_duration or get_settings().default_minimum_duration,
        threshold_rookie=table.rookie,
        threshold_apprentice=table.apprentice,
        threshold_master=table.master,
        threshold_grand_master=table.grand_master,
        created_at=datetime.now(timezone.utc),
    )
    db.add(category)
    await db.flush()
    logger.info("Created skill category %s (%d)", name, category.id)
    return category


# ---------------------------------------------------------------------------
# Achievements
# ---------------------------------------------------------------------------


async def list_achievements(db: AsyncSession) -> list[Achievement]:
    result = await db.execute(select(Achievement).order_by(Achievement.type, Achievement.threshold, Achievement.id))
    return list(result.scalars().all())


async def create_achievement(
    db: AsyncSession,
    name: str,
    description: str,
    type_: str,
    threshold: int,
    icon: str | None = None,
    skill_category_id: int | None = None,
) -> Achievement:
    """Create an achievement rule. Scoped to a category iff skill_category_id is given."""
    try:
        kind = AchievementType(type_)
    except ValueError:
        raise ValidationFailedError(f"Invalid achievement type: {type_}") from None
    if threshold < 0:
        raise ValidationFailedError("Threshold must not be negative")
    if skill_category_id is not None:
        await get_category(db, skill_category_id)

    existing = await db.execute(select(Achievement).where(Achievement.name == name))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Achievement already exists")

    achievement = Achievement(
        name=name,
        description=description,
        icon=icon,
        type=kind.value,
        threshold=threshold,
        skill_specific=skill_category_id is not None,
        skill_category_id=skill_category_id,
        created_at=datetime.now(timezone.utc),
    )
    db.add(achievement)
    await db.flush()
    return achievement


async def load_achievement_index(db: AsyncSession) -> AchievementIndex:
    """Build the evaluator index from the achievement catalog."""
    result = await db.execute(select(Achievement))
    return AchievementIndex.from_models(result.scalars().all())


async def get_unlocked_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(
        select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
    )
    return {row[0] for row in result}


async def list_user_achievements(db: AsyncSession, user_id: int) -> list[UserAchievement]:
    result = await db.execute(
        select(UserAchievement)
        .where(UserAchievement.user_id == user_id)
        .order_by(UserAchievement.unlocked_at.desc(), UserAchievement.id.desc())
    )
    return list(result.scalars().unique().all())


# ---------------------------------------------------------------------------
# Progress records
# ---------------------------------------------------------------------------


async def list_progress(db: AsyncSession, user_id: int) -> list[SkillProgress]:
    result = await db.execute(
        select(SkillProgress)
        .where(SkillProgress.user_id == user_id)
        .order_by(SkillProgress.skill_category_id)
    )
    return list(result.scalars().unique().all())


async def get_progress(db: AsyncSession, user_id: int, category_id: int) -> SkillProgress | None:
    result = await db.execute(
        select(SkillProgress).where(
            SkillProgress.user_id == user_id,
            SkillProgress.skill_category_id == category_id,
        )
    )
    return result.unique().scalar_one_or_none()


async def get_or_create_progress(db: AsyncSession, user_id: int, category: SkillCategory) -> SkillProgress:
    """Get or create the zero-valued progress row for user x category."""
    progress = await get_progress(db, user_id, category.id)
    if progress is None:
        now = datetime.now(timezone.utc)
        progress = SkillProgress(
            user_id=user_id,
            skill_category_id=category.id,
            current_streak=0,
            longest_streak=0,
            total_practice_time=0,
            last_practice_date=None,
            level=SkillLevel.BEGINNER.value,
            redeem_tokens=0,
            created_at=now,
            updated_at=now,
        )
        progress.category = category
        db.add(progress)
        await db.flush()
    return progress


def snapshot_of(progress: SkillProgress) -> ProgressSnapshot:
    return ProgressSnapshot(
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        total_practice_time=progress.total_practice_time,
        last_practice_date=progress.last_practice_date,
        level=SkillLevel(progress.level),
        redeem_tokens=progress.redeem_tokens,
    )


def apply_snapshot(progress: SkillProgress, snapshot: ProgressSnapshot, now: datetime) -> None:
    progress.current_streak = snapshot.current_streak
    progress.longest_streak = snapshot.longest_streak
    progress.total_practice_time = snapshot.total_practice_time
    progress.last_practice_date = snapshot.last_practice_date
    progress.level = snapshot.level.value
    progress.redeem_tokens = snapshot.redeem_tokens
    progress.updated_at = now


async def record_practice_progress(
    db: AsyncSession,
    redis: object,
    user_id: int,
    category: SkillCategory,
    duration_minutes: int,
    event_date: date,
    token_interval: int = TOKEN_REWARD_INTERVAL,
) -> tuple[SkillProgress, ProgressionResult, list[Achievement]]:
    """Apply one qualifying practice event and persist the outcome.

    1. Load (or create) the progress row and the achievement catalog
    2. Run the engine
    3. Write the new record and insert unlocks
    4. Emit achievement / level / token notifications

    The caller commits.
    """
    progress = await get_or_create_progress(db, user_id, category)
    catalog = await load_achievement_index(db)
    unlocked = await get_unlocked_ids(db, user_id)

    result = advance(
        snapshot_of(progress),
        duration_minutes,
        event_date,
        ThresholdTable.from_category(category),
        catalog=catalog,
        category_id=category.id,
        unlocked=unlocked,
        token_interval=token_interval,
    )

    now = datetime.now(timezone.utc)
    apply_snapshot(progress, result.record, now)

    awarded: list[Achievement] = []
    for achievement_id in sorted(result.unlocked):
        db.add(UserAchievement(user_id=user_id, achievement_id=achievement_id, unlocked_at=now))
        achievement = await db.get(Achievement, achievement_id)
        if achievement is not None:
            awarded.append(achievement)
    await db.flush()

    logger.info(
        "Practice progress user=%d category=%d streak=%d (%s) total=%d level=%s unlocked=%s",
        user_id,
        category.id,
        result.record.current_streak,
        result.outcome.value,
        result.record.total_practice_time,
        result.record.level.value,
        sorted(result.unlocked),
    )

    for achievement in awarded:
        await notify(
            db, redis, user_id, "achievement_unlocked",
            title=f"Achievement unlocked: {achievement.name}",
            description=achievement.description,
            action_url="/achievements",
            metadata={"achievement_id": achievement.id, "skill_category_id": category.id},
        )

    if result.level_changed:
        await notify(
            db, redis, user_id, "level_up",
            title=f"{category.name}: {result.record.level.value}",
            description=f"You reached {result.record.level.value} in {category.name}",
            action_url="/profile",
            metadata={
                "skill_category_id": category.id,
                "previous_level": result.previous_level.value,
                "level": result.record.level.value,
            },
        )

    if result.tokens_awarded:
        await notify(
            db, redis, user_id, "token_earned",
            title="Redeem token earned",
            description=f"{result.record.current_streak}-day {category.name} streak",
            action_url="/rewards",
            metadata={
                "skill_category_id": category.id,
                "tokens": result.record.redeem_tokens,
                "streak": result.record.current_streak,
            },
        )

    return progress, result, awarded
