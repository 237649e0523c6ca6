"""Pydantic schemas for photo endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SavePhotoRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Base64 image, data URL prefix allowed")
    task_name: str | None = Field(None, max_length=128)


class PhotoResponse(BaseModel):
    id: str
    filename: str
    task_name: str
    path: str
    created_at: datetime
