"""Shared FastAPI dependencies for application-owned objects."""

from collections.abc import AsyncGenerator

from fastapi import Request

from skillforge.practice.timer import TimerRegistry
from skillforge.redis_client import get_optional_redis


async def get_redis_dep() -> AsyncGenerator[object, None]:
    """The Redis client, or None when running without Redis."""
    yield get_optional_redis()


def get_timer_registry(request: Request) -> TimerRegistry:
    return request.app.state.timer_registry
