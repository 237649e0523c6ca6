"""Redis pub/sub to WebSocket relay.

Request handlers publish ``{"event", "channel", "data"}`` to ``ws:user:{id}``
(see ``social.notification_push``). Every API process runs one bridge that
pattern-subscribes to ``ws:user:*`` and hands each message to its local
``ConnectionManager``, so a user connected to any process receives it.
"""

import asyncio
import json
from typing import Any

import redis.asyncio as aioredis
import structlog

from skillforge.ws.manager import ConnectionManager

logger = structlog.get_logger()

USER_PATTERN = "ws:user:*"


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def decode_message(message: dict[str, Any]) -> tuple[int, dict[str, Any]] | None:
    """Turn a raw ``pmessage`` into ``(user_id, payload)``; None if unusable."""
    redis_channel = _text(message.get("channel", ""))
    try:
        user_id = int(redis_channel.rsplit(":", 1)[-1])
        payload = json.loads(_text(message.get("data", "")))
    except (ValueError, UnicodeDecodeError):
        logger.warning("pubsub_invalid_message", channel=redis_channel)
        return None
    if not isinstance(payload, dict):
        logger.warning("pubsub_invalid_message", channel=redis_channel)
        return None
    return user_id, payload


class PubSubBridge:
    def __init__(self, redis_client: aioredis.Redis, manager: ConnectionManager) -> None:
        self.redis = redis_client
        self.manager = manager
        self._running = False

    async def route(self, user_id: int, payload: dict[str, Any]) -> int:
        """Deliver one published event to the user's sockets.

        ``notifications`` go to every connection as ``{"type", "payload"}``;
        other channels go to subscribers with the data fields inlined.
        """
        event = payload.get("event", "notification")
        channel = payload.get("channel", "notifications")
        data = payload.get("data", {})
        if not isinstance(data, dict):
            data = {"value": data}

        if channel == "notifications":
            return await self.manager.deliver(user_id, {"type": event, "payload": data})
        return await self.manager.deliver(user_id, {"type": event, **data}, channel=channel)

    async def start(self) -> None:
        """Relay messages until ``stop()`` is called or the task is cancelled."""
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.psubscribe(USER_PATTERN)
        logger.info("pubsub_bridge_started", pattern=USER_PATTERN)
        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None or message.get("type") != "pmessage":
                    continue
                decoded = decode_message(message)
                if decoded is not None:
                    await self.route(*decoded)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        self._running = False
