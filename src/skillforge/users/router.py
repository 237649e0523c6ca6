"""User profile and directory endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.auth.dependencies import get_current_user
from skillforge.auth.router import user_response
from skillforge.auth.schemas import UserResponse
from skillforge.database import get_session
from skillforge.db.models import User
from skillforge.progression.router import achievement_response, progress_response
from skillforge.progression.schemas import UserAchievementResponse
from skillforge.progression.service import list_progress, list_user_achievements
from skillforge.social.friend_service import list_friends
from skillforge.social.router import public_user
from skillforge.users.schemas import (
    AvatarUploadRequest,
    DirectoryEntry,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicProfileResponse,
    UserDirectoryResponse,
)
from skillforge.users.service import friend_statuses, get_user, search_users, update_avatar, update_profile

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


async def _achievements(db: AsyncSession, user_id: int) -> list[UserAchievementResponse]:
    return [
        UserAchievementResponse(achievement=achievement_response(u.achievement), unlocked_at=u.unlocked_at)
        for u in await list_user_achievements(db, user_id)
    ]


@router.get("/me", response_model=ProfileResponse)
async def get_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Own full profile with skills, achievements and friends."""
    return ProfileResponse(
        **user_response(user).model_dump(),
        skills=[progress_response(p) for p in await list_progress(db, user.id)],
        achievements=await _achievements(db, user.id),
        friends=[public_user(f) for f in await list_friends(db, user.id)],
    )


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Update name and bio."""
    user = await update_profile(db, user, name=body.name, bio=body.bio)
    await db.commit()
    return user_response(user)


@router.post("/me/avatar", response_model=UserResponse)
async def upload_avatar(
    body: AvatarUploadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Replace the profile image."""
    user = await update_avatar(db, user, body.image)
    await db.commit()
    return user_response(user)


@router.get("", response_model=UserDirectoryResponse)
async def list_users(
    q: str | None = Query(None, max_length=64),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserDirectoryResponse:
    """Other users, optionally filtered by name or email."""
    users, total = await search_users(db, user.id, q, page, per_page)
    statuses = await friend_statuses(db, user.id, [u.id for u in users])
    return UserDirectoryResponse(
        users=[
            DirectoryEntry(**public_user(u).model_dump(), friend_status=statuses[u.id])
            for u in users
        ],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{user_id}", response_model=PublicProfileResponse)
async def get_public_profile(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PublicProfileResponse:
    """Another user's public profile."""
    other = await get_user(db, user_id)
    status = (await friend_statuses(db, user.id, [other.id]))[other.id] if other.id != user.id else "self"
    return PublicProfileResponse(
        **public_user(other).model_dump(),
        friend_status=status,
        skills=[progress_response(p) for p in await list_progress(db, other.id)],
        achievements=await _achievements(db, other.id),
    )
