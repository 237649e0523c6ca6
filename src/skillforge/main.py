"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from skillforge.auth.router import router as auth_router
from skillforge.config import get_settings
from skillforge.database import close_db, create_schema, init_db, session_scope
from skillforge.health.router import router as health_router
from skillforge.middleware import setup_middleware
from skillforge.middleware.rate_limit import RateLimiter
from skillforge.photos.router import router as photos_router
from skillforge.practice.router import router as practice_router
from skillforge.practice.timer import TimerRegistry
from skillforge.progression.router import router as progression_router
from skillforge.progression.seed import seed_all
from skillforge.redis_client import close_redis, connect_redis, get_redis
from skillforge.social.notification_router import router as notification_router
from skillforge.social.router import router as social_router
from skillforge.storage import PUBLIC_PREFIX
from skillforge.users.router import router as users_router
from skillforge.ws.bridge import PubSubBridge
from skillforge.ws.manager import ConnectionManager
from skillforge.ws.router import router as ws_router

logger = logging.getLogger(__name__)


async def _stop_bridge(bridge: PubSubBridge, task: asyncio.Task[None]) -> None:
    await bridge.stop()
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.database_url.startswith("sqlite"):
        await create_schema()

    try:
        async with session_scope() as db:
            await seed_all(db)
    except SQLAlchemyError:
        logger.warning("Seeding skipped, run the migrations first", exc_info=True)

    bridge: PubSubBridge | None = None
    bridge_task: asyncio.Task[None] | None = None
    if settings.redis_url and await connect_redis(settings.redis_url):
        bridge = PubSubBridge(get_redis(), app.state.ws_manager)
        bridge_task = asyncio.create_task(bridge.start())

    yield

    await app.state.timer_registry.close()
    if bridge is not None and bridge_task is not None:
        await _stop_bridge(bridge, bridge_task)
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SkillForge API",
        description="Backend API for SkillForge, a gamified skill practice tracker",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # Per-application state, reached through dependencies
    app.state.ws_manager = ConnectionManager(max_connections_per_user=settings.ws_max_connections_per_user)
    app.state.rate_limiter = RateLimiter.from_settings(settings)
    app.state.timer_registry = TimerRegistry(app.state.ws_manager, tick_seconds=settings.timer_tick_seconds)

    setup_middleware(app, settings, app.state.rate_limiter)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(progression_router)
    app.include_router(practice_router)
    app.include_router(social_router)
    app.include_router(notification_router)
    app.include_router(photos_router)
    app.include_router(ws_router)
    app.mount(PUBLIC_PREFIX, StaticFiles(directory=settings.upload_dir, check_dir=False), name="uploads")

    return app


app = create_app()
