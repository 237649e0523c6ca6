"""Request/response schemas for user endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from skillforge.auth.schemas import PublicUserResponse, UserResponse
from skillforge.progression.schemas import SkillProgressResponse, UserAchievementResponse


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=64)
    bio: str | None = Field(None, max_length=280)


class AvatarUploadRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 image, data URL prefix allowed")


class ProfileResponse(UserResponse):
    """Own profile with progress, unlocked achievements and friends."""

    skills: list[SkillProgressResponse] = []
    achievements: list[UserAchievementResponse] = []
    friends: list[PublicUserResponse] = []


class PublicProfileResponse(PublicUserResponse):
    friend_status: str = "none"
    skills: list[SkillProgressResponse] = []
    achievements: list[UserAchievementResponse] = []


class DirectoryEntry(PublicUserResponse):
    friend_status: str = "none"


class UserDirectoryResponse(BaseModel):
    users: list[DirectoryEntry]
    total: int
    page: int
    per_page: int
