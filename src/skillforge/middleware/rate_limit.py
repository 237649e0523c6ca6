"""Redis-backed fixed window rate limiting.

Each request is matched against the first applicable rule (login, practice
submission) or the general limit. Counters are per client IP, per rule, per
window. Without Redis, requests pass through unlimited.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from skillforge.config import Settings
from skillforge.redis_client import get_redis

# Paths exempt from rate limiting
_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window_seconds: int
    path_prefix: str = ""
    methods: frozenset[str] = frozenset()
    paths: frozenset[str] = frozenset()  # exact matches; overrides path_prefix when set

    def matches(self, method: str, path: str) -> bool:
        if self.methods and method.upper() not in self.methods:
            return False
        if self.paths:
            return path.rstrip("/") in self.paths
        return path.startswith(self.path_prefix)


@dataclass(frozen=True)
class RateLimitDecision:
    rule: RateLimitRule
    count: int

    @property
    def allowed(self) -> bool:
        return self.count <= self.rule.limit

    @property
    def remaining(self) -> int:
        return max(0, self.rule.limit - self.count)


class RateLimiter:
    """Holds the rule set and talks to Redis. One instance per application."""

    def __init__(
        self,
        rules: list[RateLimitRule],
        default: RateLimitRule,
        redis_getter: Callable[[], Any] = get_redis,
    ) -> None:
        self.rules = rules
        self.default = default
        self._redis_getter = redis_getter

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(
            rules=[
                RateLimitRule(
                    "login",
                    settings.rate_limit_login,
                    settings.rate_limit_login_window_seconds,
                    path_prefix="/api/v1/auth/login",
                    methods=frozenset({"POST"}),
                ),
                RateLimitRule(
                    "practice",
                    settings.rate_limit_practice,
                    settings.rate_limit_practice_window_seconds,
                    paths=frozenset({"/api/v1/practice", "/api/v1/practice/timer/submit"}),
                    methods=frozenset({"POST"}),
                ),
            ],
            default=RateLimitRule("general", settings.rate_limit_requests, settings.rate_limit_window_seconds),
        )

    def rule_for(self, method: str, path: str) -> RateLimitRule:
        for rule in self.rules:
            if rule.matches(method, path):
                return rule
        return self.default

    async def hit(self, client: str, method: str, path: str, now: float | None = None) -> RateLimitDecision:
        """Count one request. Raises RuntimeError when Redis is not initialized."""
        rule = self.rule_for(method, path)
        window = int(now if now is not None else time.time()) // rule.window_seconds
        rate_key = f"ratelimit:{rule.name}:{client}:{window}"

        redis = self._redis_getter()
        pipe = redis.pipeline()
        pipe.incr(rate_key)
        pipe.expire(rate_key, rule.window_seconds + 1)
        results: list[Any] = await pipe.execute()
        return RateLimitDecision(rule=rule, count=int(results[0]))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per IP using the application's RateLimiter."""

    def __init__(self, app: Any, limiter: RateLimiter) -> None:  # noqa: ANN401
        super().__init__(app)
        self.limiter = limiter

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check rate limit, return 429 if exceeded."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        try:
            decision = await self.limiter.hit(client_ip, request.method, request.url.path)
        except RuntimeError:
            # Redis not initialized, let the request through without rate limiting
            return await call_next(request)

        if not decision.allowed:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(decision.rule.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(decision.rule.limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        response.headers["X-RateLimit-Limit"] = str(decision.rule.limit)
        return response
