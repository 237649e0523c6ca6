"""Publish user events over Redis pub/sub for per-user WebSocket delivery."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from skillforge.db.models import Notification

logger = logging.getLogger(__name__)

USER_CHANNEL_PREFIX = "ws:user:"


def notification_payload(notification: "Notification") -> dict[str, Any]:
    """Wire format of a notification as delivered to WebSocket clients."""
    return {
        "id": str(notification.id),
        "type": notification.type,
        "subtype": notification.subtype,
        "title": notification.title,
        "description": notification.description,
        "timestamp": (
            notification.created_at.isoformat()
            if notification.created_at
            else None
        ),
        "read": notification.read,
        "actionUrl": notification.action_url,
        "metadata": notification.notification_metadata or {},
    }


async def publish_user_event(
    redis: object | None,
    user_id: int,
    event: str,
    data: dict[str, Any],
    channel: str = "notifications",
) -> None:
    """Publish ``{"event", "channel", "data"}`` to ws:user:{user_id}.

    The bridge pattern-subscribes to ``ws:user:*`` and routes the message to
    the user's connections subscribed to ``channel``. Fire-and-forget: publish
    failures are logged, never raised.
    """
    if redis is None:
        return

    payload = {"event": event, "channel": channel, "data": data}
    try:
        await redis.publish(  # type: ignore[union-attr]
            f"{USER_CHANNEL_PREFIX}{user_id}",
            json.dumps(payload, default=str),
        )
    except Exception:
        logger.warning(
            "Failed to publish %s via ws:user:%s",
            event,
            user_id,
            exc_info=True,
        )


async def push_notification_to_user(redis: object | None, notification: "Notification") -> None:
    """Publish a formatted notification. The notification must already be flushed."""
    await publish_user_event(
        redis,
        notification.user_id,
        "notification",
        notification_payload(notification),
    )
