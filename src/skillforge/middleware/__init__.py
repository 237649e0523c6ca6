"""Middleware registration."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillforge.config import Settings
from skillforge.middleware.error_handler import setup_error_handlers
from skillforge.middleware.logging import setup_logging
from skillforge.middleware.rate_limit import RateLimiter, RateLimitMiddleware
from skillforge.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings, limiter: RateLimiter) -> None:
    """Install logging, error handlers and the middleware stack.

    Starlette runs the last added middleware outermost. CORS goes last so
    429 responses from the rate limiter still carry CORS headers.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RateLimitMiddleware, limiter=limiter)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"],
    )
