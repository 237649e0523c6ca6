"""Friend requests and friendships.

An accepted request stores the friendship in both directions, so
"friends of X" is a single indexed lookup on ``friendships.user_id``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.db.models import FriendRequest, Friendship, User
from skillforge.exceptions import ConflictError, NotFoundError, ValidationFailedError
from skillforge.social.notification_service import notify

logger = logging.getLogger(__name__)


async def are_friends(db: AsyncSession, user_id: int, other_id: int) -> bool:
    result = await db.execute(
        select(Friendship.id).where(Friendship.user_id == user_id, Friendship.friend_id == other_id)
    )
    return result.first() is not None


async def get_friend_ids(db: AsyncSession, user_id: int) -> list[int]:
    result = await db.execute(select(Friendship.friend_id).where(Friendship.user_id == user_id))
    return [row[0] for row in result]


async def list_friends(db: AsyncSession, user_id: int) -> list[User]:
    result = await db.execute(
        select(User)
        .join(Friendship, Friendship.friend_id == User.id)
        .where(Friendship.user_id == user_id)
        .order_by(User.name, User.id)
    )
    return list(result.scalars().all())


async def _get_request(db: AsyncSession, sender_id: int, recipient_id: int) -> FriendRequest | None:
    result = await db.execute(
        select(FriendRequest).where(
            FriendRequest.sender_id == sender_id,
            FriendRequest.recipient_id == recipient_id,
        )
    )
    return result.unique().scalar_one_or_none()


async def list_incoming_requests(db: AsyncSession, user_id: int) -> list[FriendRequest]:
    result = await db.execute(
        select(FriendRequest)
        .where(FriendRequest.recipient_id == user_id)
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
    )
    return list(result.unique().scalars().all())


async def send_request(db: AsyncSession, redis: object, sender: User, recipient_id: int) -> FriendRequest:
    """Send a friend request.

    Raises:
        ValidationFailedError: Request to self.
        NotFoundError: Recipient does not exist.
        ConflictError: Already friends, or a request is pending in either direction.
    """
    if recipient_id == sender.id:
        raise ValidationFailedError("You cannot send a friend request to yourself")
    recipient = await db.get(User, recipient_id)
    if recipient is None:
        raise NotFoundError("User not found")
    if await are_friends(db, sender.id, recipient_id):
        raise ConflictError("Users are already friends")
    if await _get_request(db, sender.id, recipient_id) is not None:
        raise ConflictError("Friend request already sent")
    if await _get_request(db, recipient_id, sender.id) is not None:
        raise ConflictError("This user already sent you a friend request")

    request = FriendRequest(
        sender_id=sender.id,
        recipient_id=recipient_id,
        created_at=datetime.now(timezone.utc),
    )
    request.sender = sender
    db.add(request)
    await db.flush()

    await notify(
        db, redis, recipient_id, "friend_request",
        title="New friend request",
        description=f"{sender.name} wants to be your friend",
        action_url="/friends/requests",
        metadata={"user_id": sender.id},
    )
    logger.info("Friend request %d -> %d", sender.id, recipient_id)
    return request


async def accept_request(db: AsyncSession, redis: object, user: User, sender_id: int) -> User:
    """Accept a pending request from ``sender_id``. Returns the new friend."""
    request = await _get_request(db, sender_id, user.id)
    if request is None:
        raise NotFoundError("No friend request from this user")
    sender = await db.get(User, sender_id)
    if sender is None:
        raise NotFoundError("User not found")

    now = datetime.now(timezone.utc)
    await db.delete(request)
    if not await are_friends(db, user.id, sender_id):
        db.add(Friendship(user_id=user.id, friend_id=sender_id, created_at=now))
    if not await are_friends(db, sender_id, user.id):
        db.add(Friendship(user_id=sender_id, friend_id=user.id, created_at=now))
    await db.flush()

    await notify(
        db, redis, sender_id, "friend_accepted",
        title="Friend request accepted",
        description=f"{user.name} accepted your friend request",
        action_url=f"/users/{user.id}",
        metadata={"user_id": user.id},
    )
    logger.info("Friendship %d <-> %d", user.id, sender_id)
    return sender


async def decline_request(db: AsyncSession, user: User, sender_id: int) -> None:
    request = await _get_request(db, sender_id, user.id)
    if request is None:
        raise NotFoundError("No friend request from this user")
    await db.delete(request)
    await db.flush()


async def remove_friend(db: AsyncSession, user: User, friend_id: int) -> None:
    """Remove both directions of a friendship."""
    if not await are_friends(db, user.id, friend_id):
        raise NotFoundError("Users are not friends")
    await db.execute(
        delete(Friendship).where(
            or_(
                (Friendship.user_id == user.id) & (Friendship.friend_id == friend_id),
                (Friendship.user_id == friend_id) & (Friendship.friend_id == user.id),
            )
        )
    )
    await db.flush()
