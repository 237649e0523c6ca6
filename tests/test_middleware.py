"""Middleware tests: request ID, rate limiting, CORS, error handling."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from httpx import AsyncClient


def _counting_redis(count: int) -> MagicMock:
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=[count, True])
    redis = MagicMock()
    redis.pipeline.return_value = pipe
    return redis


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 36


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_no_rate_limit_without_redis(client: AsyncClient) -> None:
    """Without Redis, requests pass through and carry no rate limit headers."""
    for _ in range(120):
        response = await client.get("/api/v1/skill-categories")
        assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


@pytest.mark.asyncio
async def test_rate_limit_headers(app: FastAPI, client: AsyncClient) -> None:
    app.state.rate_limiter._redis_getter = lambda: _counting_redis(3)
    response = await client.get("/api/v1/skill-categories")
    assert response.status_code == 200
    assert response.headers["x-ratelimit-limit"] == "100"
    assert response.headers["x-ratelimit-remaining"] == "97"


@pytest.mark.asyncio
async def test_rate_limit_blocks_excess(app: FastAPI, client: AsyncClient) -> None:
    app.state.rate_limiter._redis_getter = lambda: _counting_redis(6)
    response = await client.post("/api/v1/auth/login", json={
        "email": "alice@example.com", "password": "whatever1A",
    })
    assert response.status_code == 429
    assert response.headers["retry-after"] == "900"
    assert response.json() == {"detail": "Rate limit exceeded. Try again later."}


@pytest.mark.asyncio
async def test_health_exempt_from_rate_limit(app: FastAPI, client: AsyncClient) -> None:
    app.state.rate_limiter._redis_getter = lambda: _counting_redis(1000)
    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json() == {"detail": "Not Found"}
    assert response.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_validation_error_format(client: AsyncClient) -> None:
    response = await client.post("/api/v1/auth/register", json={"name": "X"})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert {tuple(e["loc"])[-1] for e in data["errors"]} >= {"email", "password"}


@pytest.mark.asyncio
async def test_domain_error_format(client: AsyncClient, alice: dict) -> None:
    response = await client.get("/api/v1/users/9999", headers=alice["headers"])
    assert response.status_code == 404
    assert set(response.json()) == {"detail"}
