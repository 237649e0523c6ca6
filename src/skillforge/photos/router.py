"""Photo endpoints: store, list and delete own session photos."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.auth.dependencies import get_current_user
from skillforge.database import get_session
from skillforge.db.models import Photo, User
from skillforge.photos.schemas import PhotoResponse, SavePhotoRequest
from skillforge.photos.service import delete_photo, list_photos, save_photo

router = APIRouter(prefix="/api/v1", tags=["Photos"])


def photo_response(photo: Photo) -> PhotoResponse:
    return PhotoResponse(
        id=photo.id,
        filename=photo.filename,
        task_name=photo.task_name,
        path=photo.path,
        created_at=photo.created_at,
    )


@router.post("/photos", response_model=PhotoResponse, status_code=201)
async def create_photo(
    body: SavePhotoRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Store a photo captured at the end of a session."""
    photo = await save_photo(db, user.id, body.image, body.task_name)
    await db.commit()
    return photo_response(photo)


@router.get("/photos", response_model=list[PhotoResponse])
async def get_photos(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Own photos, newest first."""
    return [photo_response(p) for p in await list_photos(db, user.id)]


@router.delete("/photos/{photo_id}", status_code=200)
async def remove_photo(
    photo_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Delete an own photo."""
    await delete_photo(db, user.id, photo_id)
    await db.commit()
    return {"detail": "Photo deleted"}
