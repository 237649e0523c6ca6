"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.auth.jwt import create_access_token
from skillforge.auth.password import PasswordStrengthError
from skillforge.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from skillforge.auth.service import InvalidCredentialsError, authenticate_user, register_user
from skillforge.config import get_settings
from skillforge.database import get_session
from skillforge.db.models import User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def user_response(user: User) -> UserResponse:
    """Build a UserResponse from a User model."""
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        profile_image=user.profile_image,
        bio=user.bio,
        is_admin=user.is_admin,
        created_at=user.created_at,
        last_login=user.last_login,
        login_count=user.login_count,
    )


def _issue_token(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        token_type="bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=user_response(user),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Register with name, email and password."""
    try:
        user = await register_user(db, name=body.name, email=body.email, password=body.password)
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return _issue_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Login with email + password."""
    try:
        user = await authenticate_user(db, body.email, body.password)
    except InvalidCredentialsError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    await db.commit()
    return _issue_token(user)
