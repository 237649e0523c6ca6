"""WebSocket endpoint: ``/ws?token=<access token>``.

Client messages are JSON objects with an ``action``:

    {"action": "subscribe", "channel": "feed"}    -> {"type": "subscribed", "channel": "feed"}
    {"action": "unsubscribe", "channel": "feed"}  -> {"type": "unsubscribed", "channel": "feed"}
    {"action": "timer"}                           -> {"type": "timer_state", ...}
    {"action": "ping"}                            -> {"type": "pong"}

Anything else gets ``{"type": "error", "message": ...}``. Server pushes are
``{"type": "notification", "payload": {...}}`` on every connection, and
``{"channel": "feed" | "timer", "data": {...}}`` for subscribers.
"""

import json
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
import jwt
import structlog

from skillforge.auth.jwt import verify_token
from skillforge.ws.manager import ConnectionManager

logger = structlog.get_logger()

router = APIRouter()

CLOSE_AUTH_FAILED = 4001


@dataclass
class _Session:
    websocket: WebSocket
    manager: ConnectionManager
    conn_id: str
    user_id: int


async def _subscribe(session: _Session, msg: dict[str, Any]) -> dict[str, Any]:
    channel = msg.get("channel", "")
    if not session.manager.subscribe(session.conn_id, channel):
        return {"type": "error", "message": f"Invalid channel: {channel}"}
    return {"type": "subscribed", "channel": channel}


async def _unsubscribe(session: _Session, msg: dict[str, Any]) -> dict[str, Any]:
    channel = msg.get("channel", "")
    session.manager.unsubscribe(session.conn_id, channel)
    return {"type": "unsubscribed", "channel": channel}


async def _timer(session: _Session, msg: dict[str, Any]) -> dict[str, Any]:
    active = session.websocket.app.state.timer_registry.get(session.user_id)
    state = active.to_dict() if active is not None else {"status": "inactive"}
    return {"type": "timer_state", **state}


async def _ping(session: _Session, msg: dict[str, Any]) -> dict[str, Any]:
    return {"type": "pong"}


_ACTIONS: dict[str, Callable[[_Session, dict[str, Any]], Awaitable[dict[str, Any]]]] = {
    "subscribe": _subscribe,
    "unsubscribe": _unsubscribe,
    "timer": _timer,
    "ping": _ping,
}


async def _reply(session: _Session, raw: str) -> dict[str, Any]:
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        return {"type": "error", "message": "Invalid JSON"}
    if not isinstance(msg, dict):
        return {"type": "error", "message": "Expected a JSON object"}

    handler = _ACTIONS.get(msg.get("action"))
    if handler is None:
        return {"type": "error", "message": f"Unknown action: {msg.get('action')}"}
    return await handler(session, msg)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = Query(...)) -> None:
    try:
        user_id = int(verify_token(token, expected_type="access")["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as e:
        await websocket.close(code=CLOSE_AUTH_FAILED, reason=f"Authentication failed: {e}")
        return

    manager: ConnectionManager = websocket.app.state.ws_manager
    session = _Session(websocket, manager, str(uuid.uuid4()), user_id)
    if not await manager.connect(websocket, session.conn_id, user_id):
        return

    try:
        while True:
            raw = await websocket.receive_text()
            await websocket.send_json(await _reply(session, raw))
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("ws_error", conn_id=session.conn_id)
    finally:
        manager.disconnect(session.conn_id)
