"""Reward catalog and token redemption."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.config import Reward, get_settings
from skillforge.db.models import SkillProgress, TokenRedemption
from skillforge.exceptions import NotFoundError, ValidationFailedError
from skillforge.progression.service import get_progress
from skillforge.social.notification_service import notify

logger = logging.getLogger(__name__)


def list_rewards() -> list[Reward]:
    """The configured reward catalog."""
    return list(get_settings().rewards)


def get_reward(reward_id: str) -> Reward:
    reward = next((r for r in get_settings().rewards if r.id == reward_id), None)
    if reward is None:
        raise NotFoundError("Reward not found")
    return reward


async def redeem_tokens(
    db: AsyncSession,
    redis: object,
    user_id: int,
    category_id: int,
    reward_id: str,
) -> tuple[SkillProgress, Reward]:
    """Spend the tokens of one progress record on a catalog reward.

    Raises NotFoundError (no progress in that category, unknown reward) and
    ValidationFailedError when the balance does not cover the cost.
    The caller commits.
    """
    progress = await get_progress(db, user_id, category_id)
    if progress is None:
        raise NotFoundError("Skill not found")
    reward = get_reward(reward_id)
    if progress.redeem_tokens < reward.cost:
        raise ValidationFailedError("Insufficient tokens")

    now = datetime.now(timezone.utc)
    progress.redeem_tokens -= reward.cost
    progress.updated_at = now
    db.add(TokenRedemption(
        user_id=user_id,
        skill_category_id=category_id,
        reward_id=reward.id,
        cost=reward.cost,
        remaining_tokens=progress.redeem_tokens,
        created_at=now,
    ))
    await db.flush()

    logger.info(
        "User %d redeemed %s for %d tokens (category %d, %d left)",
        user_id, reward.id, reward.cost, category_id, progress.redeem_tokens,
    )

    await notify(
        db, redis, user_id, "token_redeemed",
        title=f"Redeemed: {reward.name}",
        description=f"Spent {reward.cost} tokens",
        action_url="/rewards",
        metadata={
            "reward_id": reward.id,
            "skill_category_id": category_id,
            "remaining_tokens": progress.redeem_tokens,
        },
    )
    return progress, reward


async def list_redemptions(db: AsyncSession, user_id: int) -> list[TokenRedemption]:
    result = await db.execute(
        select(TokenRedemption)
        .where(TokenRedemption.user_id == user_id)
        .order_by(TokenRedemption.created_at.desc(), TokenRedemption.id.desc())
    )
    return list(result.scalars().all())
