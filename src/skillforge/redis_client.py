"""Process-wide Redis client.

Redis is optional. Without it the rate limiter lets every request through and
notifications are stored but not pushed live.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_client: redis.Redis | None = None


async def connect_redis(url: str) -> bool:
    """Connect and ping. On failure nothing stays connected and False is returned."""
    global _client  # noqa: PLW0603
    client = redis.from_url(url, encoding="utf-8", decode_responses=True, max_connections=50)
    try:
        await client.ping()
    except (RedisError, OSError):
        logger.warning("Redis unavailable at %s, continuing without it", url, exc_info=True)
        await client.aclose()
        return False
    _client = client
    return True


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """The connected client. Raises RuntimeError when Redis is not connected."""
    if _client is None:
        msg = "Redis not connected"
        raise RuntimeError(msg)
    return _client


def get_optional_redis() -> redis.Redis | None:
    return _client
