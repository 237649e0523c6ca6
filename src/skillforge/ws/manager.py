"""WebSocket connection manager.

A user may hold several connections (tabs, devices). Personal notifications
reach all of them; ``feed`` and ``timer`` events only reach connections that
subscribed to the channel. One instance lives on ``app.state.ws_manager``.
"""

import json
from collections import defaultdict
from dataclasses import dataclass, field

from fastapi import WebSocket
import structlog

logger = structlog.get_logger()

CHANNELS = frozenset({"notifications", "feed", "timer"})

CLOSE_TOO_MANY_CONNECTIONS = 4008


@dataclass
class Connection:
    websocket: WebSocket
    user_id: int
    channels: set[str] = field(default_factory=set)


class ConnectionManager:
    """Per-user registry of open sockets and their channel subscriptions."""

    def __init__(self, max_connections_per_user: int = 5) -> None:
        self.max_connections_per_user = max_connections_per_user
        self._connections: dict[str, Connection] = {}
        self._by_user: dict[int, set[str]] = defaultdict(set)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def user_connection_count(self, user_id: int) -> int:
        return len(self._by_user.get(user_id, ()))

    def subscribers(self, channel: str) -> int:
        return sum(channel in c.channels for c in self._connections.values())

    async def connect(self, websocket: WebSocket, conn_id: str, user_id: int) -> bool:
        """Accept the socket unless the user already has the maximum open."""
        if self.user_connection_count(user_id) >= self.max_connections_per_user:
            await websocket.close(code=CLOSE_TOO_MANY_CONNECTIONS, reason="Too many connections")
            logger.warning("ws_connection_limit", user_id=user_id)
            return False

        await websocket.accept()
        self._connections[conn_id] = Connection(websocket, user_id)
        self._by_user[user_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=user_id)
        return True

    def disconnect(self, conn_id: str) -> None:
        conn = self._connections.pop(conn_id, None)
        if conn is None:
            return
        owned = self._by_user[conn.user_id]
        owned.discard(conn_id)
        if not owned:
            del self._by_user[conn.user_id]
        logger.info("ws_disconnected", conn_id=conn_id, user_id=conn.user_id)

    def subscribe(self, conn_id: str, channel: str) -> bool:
        conn = self._connections.get(conn_id)
        if conn is None or channel not in CHANNELS:
            return False
        conn.channels.add(channel)
        return True

    def unsubscribe(self, conn_id: str, channel: str) -> None:
        conn = self._connections.get(conn_id)
        if conn is not None:
            conn.channels.discard(channel)

    async def deliver(self, user_id: int, message: dict, channel: str | None = None) -> int:
        """Send ``message`` to a user's sockets and return how many received it.

        Without a channel every connection of the user gets the message as is.
        With a channel only subscribed connections get it, wrapped as
        ``{"channel": ..., "data": message}``. Sockets that fail are dropped.
        """
        targets = [
            conn_id
            for conn_id in self._by_user.get(user_id, ())
            if channel is None or channel in self._connections[conn_id].channels
        ]
        if not targets:
            return 0

        body = message if channel is None else {"channel": channel, "data": message}
        text = json.dumps(body, default=str)
        sent = 0
        for conn_id in targets:
            try:
                await self._connections[conn_id].websocket.send_text(text)
            except Exception:
                logger.info("ws_send_failed", conn_id=conn_id, user_id=user_id)
                self.disconnect(conn_id)
            else:
                sent += 1
        return sent
