"""Shared test fixtures."""

from __future__ import annotations

import base64
import os
import tempfile
from collections.abc import AsyncGenerator

# Settings are read once at import time by skillforge.main
os.environ["SKILLFORGE_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SKILLFORGE_REDIS_URL"] = ""
os.environ["SKILLFORGE_JWT_ALGORITHM"] = "HS256"
os.environ["SKILLFORGE_JWT_SECRET"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["SKILLFORGE_UPLOAD_DIR"] = tempfile.mkdtemp(prefix="skillforge_test_uploads_")
os.environ["SKILLFORGE_ADMIN_EMAILS"] = '["admin@example.com"]'
os.environ["SKILLFORGE_TIMER_TICK_SECONDS"] = "0.01"
os.environ["SKILLFORGE_LOG_FORMAT"] = "console"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from skillforge.auth.jwt import reset_keys  # noqa: E402
from skillforge.config import get_settings  # noqa: E402
from skillforge.database import close_db, create_schema, init_db, session_scope  # noqa: E402
from skillforge.main import create_app  # noqa: E402
from skillforge.progression.seed import seed_all  # noqa: E402

get_settings.cache_clear()
reset_keys()

PASSWORD = "SecurePass1"

# Smallest payloads that pass magic-byte sniffing
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
PNG_B64 = base64.b64encode(PNG_BYTES).decode()
PNG_DATA_URL = f"data:image/png;base64,{PNG_B64}"


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client over a fresh in-memory database with seed data."""
    settings = get_settings()
    await init_db(settings.database_url)
    await create_schema()
    async with session_scope() as session:
        await seed_all(session)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await app.state.timer_registry.close()
    await close_db()


@pytest_asyncio.fixture
async def db_session(client: AsyncClient) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session on the same database as ``client``."""
    async with session_scope() as session:
        yield session


async def register(client: AsyncClient, name: str, email: str, password: str = PASSWORD) -> dict:
    """Register a user. Returns the token response body."""
    response = await client.post("/api/v1/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
    })
    assert response.status_code == 201, response.text
    return response.json()


def auth_headers(token_body: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_body['access_token']}"}


@pytest_asyncio.fixture
async def alice(client: AsyncClient) -> dict:
    """Registered user: token body plus ``headers``."""
    body = await register(client, "Alice", "alice@example.com")
    body["headers"] = auth_headers(body)
    return body


@pytest_asyncio.fixture
async def bob(client: AsyncClient) -> dict:
    body = await register(client, "Bob", "bob@example.com")
    body["headers"] = auth_headers(body)
    return body


@pytest_asyncio.fixture
async def admin(client: AsyncClient) -> dict:
    """Registered user whose email is in SKILLFORGE_ADMIN_EMAILS."""
    body = await register(client, "Admin", "admin@example.com")
    body["headers"] = auth_headers(body)
    return body


async def make_friends(client: AsyncClient, a: dict, b: dict) -> None:
    """Send and accept a friend request between two registered users."""
    response = await client.post(f"/api/v1/friends/requests/{b['user']['id']}", headers=a["headers"])
    assert response.status_code == 201, response.text
    response = await client.post(f"/api/v1/friends/requests/{a['user']['id']}/accept", headers=b["headers"])
    assert response.status_code == 200, response.text


async def category_id(client: AsyncClient, name: str) -> int:
    response = await client.get("/api/v1/skill-categories")
    return next(c["id"] for c in response.json() if c["name"] == name)


@pytest.fixture
def png_b64() -> str:
    return PNG_B64
