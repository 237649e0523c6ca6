"""Session photos: stored files plus a metadata row per photo."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.db.models import Photo
from skillforge.exceptions import NotFoundError
from skillforge.storage import ImageKind, delete_image, save_image

logger = logging.getLogger(__name__)


async def save_photo(db: AsyncSession, user_id: int, image: str, task_name: str | None = None) -> Photo:
    """Decode and store a base64 photo. The caller commits."""
    path, filename = await save_image(image, ImageKind.PHOTO, user_id)
    photo = Photo(
        id=str(uuid.uuid4()),
        user_id=user_id,
        filename=filename,
        task_name=(task_name or "").strip() or "Untitled Task",
        path=path,
        created_at=datetime.now(timezone.utc),
    )
    db.add(photo)
    await db.flush()
    logger.info("Saved photo %s for user %d", photo.id, user_id)
    return photo


async def list_photos(db: AsyncSession, user_id: int) -> list[Photo]:
    result = await db.execute(
        select(Photo).where(Photo.user_id == user_id).order_by(Photo.created_at.desc())
    )
    return list(result.scalars().all())


async def delete_photo(db: AsyncSession, user_id: int, photo_id: str) -> None:
    """Delete an own photo and its file. Other users' photos are reported as not found."""
    photo = await db.get(Photo, photo_id)
    if photo is None or photo.user_id != user_id:
        raise NotFoundError("Photo not found")
    await db.delete(photo)
    await db.flush()
    if not await delete_image(photo.path):
        logger.warning("Photo file already missing: %s", photo.path)
