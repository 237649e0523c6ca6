"""Direct messages between friends."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.db.models import Message, User
from skillforge.exceptions import NotFoundError, PermissionDeniedError, ValidationFailedError
from skillforge.social.friend_service import are_friends
from skillforge.social.notification_service import notify
from skillforge.storage import ImageKind, save_image

logger = logging.getLogger(__name__)


@dataclass
class ConversationSummary:
    partner: User
    last_message: Message
    unread_count: int


async def send_message(
    db: AsyncSession,
    redis: object,
    sender: User,
    recipient_id: int,
    content: str = "",
    image: str | None = None,
) -> Message:
    """Send a message (text and/or base64 image) to a friend.

    Raises:
        NotFoundError: Recipient does not exist.
        PermissionDeniedError: Recipient is not a friend.
        ValidationFailedError: Empty message or bad image.
    """
    content = (content or "").strip()
    if not content and not image:
        raise ValidationFailedError("Message must have content or an image")
    recipient = await db.get(User, recipient_id)
    if recipient is None:
        raise NotFoundError("Recipient not found")
    if not await are_friends(db, sender.id, recipient_id):
        raise PermissionDeniedError("You can only send messages to your friends")

    image_path = None
    if image:
        image_path, _ = await save_image(image, ImageKind.MESSAGE, sender.id)

    message = Message(
        sender_id=sender.id,
        recipient_id=recipient_id,
        content=content,
        image=image_path,
        read=False,
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    await db.flush()

    preview = content[:80] if content else "Sent you an image"
    await notify(
        db, redis, recipient_id, "new_message",
        title=f"New message from {sender.name}",
        description=preview,
        action_url=f"/messages/{sender.id}",
        metadata={"message_id": message.id, "sender_id": sender.id},
    )
    return message


async def get_conversation(
    db: AsyncSession,
    user_id: int,
    other_id: int,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[Message], int]:
    """Messages between two users, oldest first. Marks incoming messages as read."""
    if await db.get(User, other_id) is None:
        raise NotFoundError("User not found")

    between = or_(
        (Message.sender_id == user_id) & (Message.recipient_id == other_id),
        (Message.sender_id == other_id) & (Message.recipient_id == user_id),
    )
    await db.execute(
        update(Message)
        .where(Message.sender_id == other_id, Message.recipient_id == user_id, Message.read.is_(False))
        .values(read=True)
    )

    total = (await db.execute(select(func.count()).select_from(Message).where(between))).scalar_one()
    result = await db.execute(
        select(Message)
        .where(between)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    messages = list(result.scalars().all())
    messages.reverse()
    await db.flush()
    return messages, total


async def list_conversations(db: AsyncSession, user_id: int) -> list[ConversationSummary]:
    """One entry per chat partner: last message and incoming unread count, newest first."""
    result = await db.execute(
        select(Message)
        .where(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
        .order_by(Message.created_at.desc(), Message.id.desc())
    )

    latest: dict[int, Message] = {}
    unread: dict[int, int] = {}
    for message in result.scalars():
        partner_id = message.recipient_id if message.sender_id == user_id else message.sender_id
        latest.setdefault(partner_id, message)
        if message.recipient_id == user_id and not message.read:
            unread[partner_id] = unread.get(partner_id, 0) + 1

    if not latest:
        return []
    partners = {
        u.id: u for u in (await db.execute(select(User).where(User.id.in_(latest)))).scalars()
    }
    return [
        ConversationSummary(partner=partners[pid], last_message=msg, unread_count=unread.get(pid, 0))
        for pid, msg in latest.items()
        if pid in partners
    ]


async def unread_message_count(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Message)
        .where(Message.recipient_id == user_id, Message.read.is_(False))
    )
    return result.scalar_one()
