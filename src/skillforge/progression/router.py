"""Skill category, achievement and reward endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.auth.dependencies import get_current_admin, get_current_user
from skillforge.config import Reward
from skillforge.database import get_session
from skillforge.db.models import Achievement, SkillCategory, SkillProgress, User
from skillforge.dependencies import get_redis_dep
from skillforge.exceptions import ValidationFailedError
from skillforge.progression import rewards, service
from skillforge.progression.schemas import (
    AchievementResponse,
    CreateAchievementRequest,
    CreateSkillCategoryRequest,
    LevelProgress,
    RedeemRequest,
    RedeemResponse,
    RedemptionResponse,
    RewardResponse,
    SkillCategoryResponse,
    SkillProgressResponse,
    ThresholdsModel,
    UserAchievementResponse,
)
from skillforge.progression.thresholds import ThresholdTable, level_info
from skillforge.storage import ImageKind, save_image

router = APIRouter(prefix="/api/v1", tags=["Progression"])


def category_response(category: SkillCategory) -> SkillCategoryResponse:
    return SkillCategoryResponse(
        id=category.id,
        name=category.name,
        description=category.description,
        icon=category.icon,
        minimum_duration=category.minimum_duration,
        thresholds=ThresholdsModel(
            rookie=category.threshold_rookie,
            apprentice=category.threshold_apprentice,
            master=category.threshold_master,
            grand_master=category.threshold_grand_master,
        ),
    )


def progress_response(progress: SkillProgress) -> SkillProgressResponse:
    info = level_info(progress.total_practice_time, ThresholdTable.from_category(progress.category))
    return SkillProgressResponse(
        skill_category=category_response(progress.category),
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        total_practice_time=progress.total_practice_time,
        last_practice_date=progress.last_practice_date,
        level=progress.level,
        redeem_tokens=progress.redeem_tokens,
        level_progress=LevelProgress(
            minutes_into_level=info["minutes_into_level"],
            minutes_for_level=info["minutes_for_level"],
            next_level=info["next_level"],
            minutes_to_next=info["minutes_to_next"],
        ),
    )


def achievement_response(achievement: Achievement) -> AchievementResponse:
    return AchievementResponse(
        id=achievement.id,
        name=achievement.name,
        description=achievement.description,
        icon=achievement.icon,
        type=achievement.type,
        threshold=achievement.threshold,
        skill_specific=achievement.skill_specific,
        skill_category_id=achievement.skill_category_id,
        skill_category_name=achievement.skill_category.name if achievement.skill_category else None,
    )


def reward_response(reward: Reward) -> RewardResponse:
    return RewardResponse(id=reward.id, name=reward.name, description=reward.description, cost=reward.cost)


# --- Skill categories ---


@router.get("/skill-categories", response_model=list[SkillCategoryResponse])
async def list_skill_categories(db: AsyncSession = Depends(get_session)):
    """All skill categories."""
    return [category_response(c) for c in await service.list_categories(db)]


@router.post("/skill-categories", response_model=SkillCategoryResponse, status_code=201)
async def create_skill_category(
    body: CreateSkillCategoryRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    """Create a skill category (admin). Thresholds must be strictly increasing."""
    try:
        table = ThresholdTable(**body.thresholds.model_dump())
    except ValueError as e:
        raise ValidationFailedError(str(e)) from e

    icon = body.icon
    if icon and icon.startswith("data:"):
        icon, _ = await save_image(icon, ImageKind.ICON, "category")

    category = await service.create_category(
        db,
        name=body.name.strip(),
        description=body.description,
        icon=icon,
        minimum_duration=body.minimum_duration,
        thresholds=table,
    )
    await db.commit()
    return category_response(category)


@router.get("/skill-categories/me", response_model=list[SkillProgressResponse])
async def my_skill_progress(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Own progress records, one per practiced category."""
    return [progress_response(p) for p in await service.list_progress(db, user.id)]


# --- Achievements ---


@router.get("/achievements", response_model=list[AchievementResponse])
async def list_achievements(db: AsyncSession = Depends(get_session)):
    """The achievement catalog."""
    return [achievement_response(a) for a in await service.list_achievements(db)]


@router.post("/achievements", response_model=AchievementResponse, status_code=201)
async def create_achievement(
    body: CreateAchievementRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    """Create an achievement rule (admin)."""
    achievement = await service.create_achievement(
        db,
        name=body.name.strip(),
        description=body.description,
        type_=body.type,
        threshold=body.threshold,
        icon=body.icon,
        skill_category_id=body.skill_category_id,
    )
    await db.commit()
    await db.refresh(achievement, ["skill_category"])
    return achievement_response(achievement)


@router.get("/achievements/me", response_model=list[UserAchievementResponse])
async def my_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Achievements the user has unlocked, newest first."""
    unlocks = await service.list_user_achievements(db, user.id)
    return [
        UserAchievementResponse(achievement=achievement_response(u.achievement), unlocked_at=u.unlocked_at)
        for u in unlocks
    ]


# --- Rewards ---


@router.get("/rewards", response_model=list[RewardResponse])
async def list_rewards():
    """The reward catalog."""
    return [reward_response(r) for r in rewards.list_rewards()]


@router.post("/rewards/redeem", response_model=RedeemResponse)
async def redeem_reward(
    body: RedeemRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Spend redeem tokens from one skill's progress on a reward."""
    progress, reward = await rewards.redeem_tokens(db, redis, user.id, body.skill_category_id, body.reward_id)
    await db.commit()
    return RedeemResponse(
        reward=reward_response(reward),
        skill=progress_response(progress),
        remaining_tokens=progress.redeem_tokens,
    )


@router.get("/rewards/redemptions", response_model=list[RedemptionResponse])
async def my_redemptions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Own redemption history, newest first."""
    return [
        RedemptionResponse(
            id=r.id,
            reward_id=r.reward_id,
            skill_category_id=r.skill_category_id,
            cost=r.cost,
            remaining_tokens=r.remaining_tokens,
            created_at=r.created_at,
        )
        for r in await rewards.list_redemptions(db, user.id)
    ]
