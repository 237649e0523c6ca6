"""Social API endpoints: friends and direct messages."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.auth.dependencies import get_current_user
from skillforge.auth.schemas import PublicUserResponse
from skillforge.database import get_session
from skillforge.db.models import Message, User
from skillforge.dependencies import get_redis_dep
from skillforge.exceptions import NotFoundError
from skillforge.social import friend_service, message_service
from skillforge.social.schemas import (
    ConversationResponse,
    ConversationSummaryResponse,
    FriendListResponse,
    FriendRequestResponse,
    MessageResponse,
    SendMessageRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Social"])


def public_user(user: User) -> PublicUserResponse:
    return PublicUserResponse(
        id=user.id,
        name=user.name,
        profile_image=user.profile_image,
        bio=user.bio,
    )


def message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        sender_id=message.sender_id,
        recipient_id=message.recipient_id,
        content=message.content,
        image=message.image,
        read=message.read,
        created_at=message.created_at,
    )


# --- Friends ---


@router.get("/friends", response_model=FriendListResponse)
async def list_friends(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List own friends."""
    friends = await friend_service.list_friends(db, user.id)
    return FriendListResponse(friends=[public_user(f) for f in friends], total=len(friends))


@router.delete("/friends/{user_id}", status_code=200)
async def unfriend(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Remove a friend (both directions)."""
    await friend_service.remove_friend(db, user, user_id)
    await db.commit()
    return {"detail": "Friend removed"}


@router.get("/friends/requests", response_model=list[FriendRequestResponse])
async def list_friend_requests(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Incoming friend requests, newest first."""
    requests = await friend_service.list_incoming_requests(db, user.id)
    return [
        FriendRequestResponse(id=r.id, sender=public_user(r.sender), created_at=r.created_at)
        for r in requests
    ]


@router.post("/friends/requests/{user_id}", response_model=FriendRequestResponse, status_code=201)
async def send_friend_request(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Send a friend request to another user."""
    request = await friend_service.send_request(db, redis, user, user_id)
    await db.commit()
    return FriendRequestResponse(id=request.id, sender=public_user(user), created_at=request.created_at)


@router.post("/friends/requests/{user_id}/accept", response_model=PublicUserResponse)
async def accept_friend_request(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Accept the request sent by ``user_id``."""
    friend = await friend_service.accept_request(db, redis, user, user_id)
    await db.commit()
    return public_user(friend)


@router.post("/friends/requests/{user_id}/decline", status_code=200)
async def decline_friend_request(
    user_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Decline the request sent by ``user_id``."""
    await friend_service.decline_request(db, user, user_id)
    await db.commit()
    return {"detail": "Friend request declined"}


# --- Messages ---


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    body: SendMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Send a direct message to a friend."""
    message = await message_service.send_message(
        db, redis, user, body.recipient_id, content=body.content, image=body.image,
    )
    await db.commit()
    return message_response(message)


@router.get("/messages/conversations", response_model=list[ConversationSummaryResponse])
async def list_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Chat list: one entry per partner with the last message and unread count."""
    summaries = await message_service.list_conversations(db, user.id)
    return [
        ConversationSummaryResponse(
            user=public_user(s.partner),
            last_message=message_response(s.last_message),
            unread_count=s.unread_count,
        )
        for s in summaries
    ]


@router.get("/messages/conversations/{user_id}", response_model=ConversationResponse)
async def get_conversation(
    user_id: int,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Conversation with another user, oldest first. Marks incoming messages read."""
    messages, total = await message_service.get_conversation(db, user.id, user_id, page, per_page)
    other = await db.get(User, user_id)
    if other is None:
        raise NotFoundError("User not found")
    await db.commit()
    return ConversationResponse(
        user=public_user(other),
        messages=[message_response(m) for m in messages],
        total=total,
        page=page,
        per_page=per_page,
    )
