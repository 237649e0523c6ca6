"""Request authentication: ``Authorization: Bearer <access token>``."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.auth.jwt import verify_token
from skillforge.auth.service import get_user_by_id
from skillforge.database import get_session
from skillforge.db.models import User

_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """The user named by the token's ``sub``; 401 if missing, invalid or deleted."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        user_id = int(verify_token(credentials.credentials)["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        raise _unauthorized(str(e) or "Invalid token") from e

    user = await get_user_by_id(db, user_id)
    if user is None:
        raise _unauthorized("User not found")
    return user


async def get_current_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
