"""Pydantic schemas for skill category, achievement and reward endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


# --- Skill categories ---


class ThresholdsModel(BaseModel):
    rookie: int = Field(300, ge=1)
    apprentice: int = Field(1800, ge=1)
    master: int = Field(6000, ge=1)
    grand_master: int = Field(18000, ge=1)


class CreateSkillCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    description: str = Field(..., min_length=1, max_length=1000)
    icon: str | None = Field(None, description="Icon file name or base64 image")
    minimum_duration: int | None = Field(None, ge=1, le=600, description="Defaults to the configured minimum")
    thresholds: ThresholdsModel = ThresholdsModel()


class SkillCategoryResponse(BaseModel):
    id: int
    name: str
    description: str
    icon: str | None = None
    minimum_duration: int
    thresholds: ThresholdsModel


class LevelProgress(BaseModel):
    minutes_into_level: int
    minutes_for_level: int
    next_level: str
    minutes_to_next: int


class SkillProgressResponse(BaseModel):
    skill_category: SkillCategoryResponse
    current_streak: int
    longest_streak: int
    total_practice_time: int
    last_practice_date: date | None = None
    level: str
    redeem_tokens: int
    level_progress: LevelProgress


# --- Achievements ---


class CreateAchievementRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1, max_length=1000)
    icon: str | None = None
    type: str = Field(..., pattern="^(streak|practice_time|milestones|special)$")
    threshold: int = Field(..., ge=0)
    skill_category_id: int | None = None


class AchievementResponse(BaseModel):
    id: int
    name: str
    description: str
    icon: str | None = None
    type: str
    threshold: int
    skill_specific: bool
    skill_category_id: int | None = None
    skill_category_name: str | None = None


class UserAchievementResponse(BaseModel):
    achievement: AchievementResponse
    unlocked_at: datetime


# --- Rewards ---


class RewardResponse(BaseModel):
    id: str
    name: str
    description: str
    cost: int


class RedeemRequest(BaseModel):
    skill_category_id: int
    reward_id: str = Field(..., min_length=1, max_length=64)


class RedeemResponse(BaseModel):
    reward: RewardResponse
    skill: SkillProgressResponse
    remaining_tokens: int


class RedemptionResponse(BaseModel):
    id: int
    reward_id: str
    skill_category_id: int
    cost: int
    remaining_tokens: int
    created_at: datetime
