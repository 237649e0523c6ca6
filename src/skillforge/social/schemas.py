"""Pydantic schemas for social endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from skillforge.auth.schemas import PublicUserResponse


# --- Friends ---


class FriendRequestResponse(BaseModel):
    id: int
    sender: PublicUserResponse
    created_at: datetime


class FriendListResponse(BaseModel):
    friends: list[PublicUserResponse]
    total: int


# --- Messages ---


class SendMessageRequest(BaseModel):
    recipient_id: int
    content: str = Field("", max_length=2000)
    image: str | None = Field(None, description="Base64 image, data URL prefix allowed")


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    recipient_id: int
    content: str
    image: str | None = None
    read: bool
    created_at: datetime


class ConversationResponse(BaseModel):
    user: PublicUserResponse
    messages: list[MessageResponse]
    total: int
    page: int
    per_page: int


class ConversationSummaryResponse(BaseModel):
    user: PublicUserResponse
    last_message: MessageResponse
    unread_count: int


# --- Notifications ---


class NotificationResponse(BaseModel):
    id: str
    type: str
    subtype: str
    title: str
    description: str | None = None
    timestamp: datetime | None = None
    read: bool
    action_url: str | None = None
    metadata: dict[str, Any] = {}


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int
