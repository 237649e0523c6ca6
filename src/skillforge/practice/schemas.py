"""Pydantic schemas for practice and timer endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from skillforge.auth.schemas import PublicUserResponse
from skillforge.progression.schemas import AchievementResponse, SkillProgressResponse


class SubmitPracticeRequest(BaseModel):
    skill_category_id: int
    duration: int = Field(..., ge=1, le=1440, description="Minutes")
    image: str = Field(..., min_length=1, description="Base64 image, data URL prefix allowed")
    notes: str | None = Field(None, max_length=2000)


class PracticeResponse(BaseModel):
    id: int
    user: PublicUserResponse
    skill_category_id: int
    skill_category_name: str
    duration: int
    image: str
    notes: str | None = None
    qualifying: bool
    created_at: datetime


class PracticeListResponse(BaseModel):
    practices: list[PracticeResponse]
    total: int
    page: int
    per_page: int


class PracticeSubmitResponse(BaseModel):
    practice: PracticeResponse
    progress: SkillProgressResponse | None = None
    streak_outcome: str | None = None
    level_changed: bool = False
    tokens_awarded: int = 0
    unlocked_achievements: list[AchievementResponse] = []


# --- Timer ---


class StartTimerRequest(BaseModel):
    skill_category_id: int
    duration_minutes: int = Field(..., ge=1)


class SubmitTimerRequest(BaseModel):
    image: str = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=2000)


class TimerResponse(BaseModel):
    status: str
    skill_category_id: int | None = None
    duration_minutes: int | None = None
    duration_seconds: int = 0
    remaining_seconds: int = 0
    progress: float = 0.0
    started_at: datetime | None = None
