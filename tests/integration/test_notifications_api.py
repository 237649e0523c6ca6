"""Integration tests: notification endpoints and the notification service."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.social.notification_service import SUBTYPES, create_notification, notify


async def _create(db: AsyncSession, user_id: int, count: int = 1) -> None:
    for i in range(count):
        await create_notification(db, user_id, "system", "announcement", title=f"Note {i}")
    await db.commit()


class TestNotificationsAPI:
    @pytest.mark.asyncio
    async def test_list_notifications_empty(self, client: AsyncClient, alice: dict):
        response = await client.get("/api/v1/notifications", headers=alice["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 0
        assert data["notifications"] == []

    @pytest.mark.asyncio
    async def test_list_and_paginate(self, client: AsyncClient, alice: dict, db_session: AsyncSession):
        await _create(db_session, alice["user"]["id"], count=3)
        data = (await client.get(
            "/api/v1/notifications", headers=alice["headers"], params={"per_page": 2},
        )).json()
        assert data["total"] == 3
        assert len(data["notifications"]) == 2
        assert data["notifications"][0]["read"] is False

    @pytest.mark.asyncio
    async def test_mark_one_read(self, client: AsyncClient, alice: dict, db_session: AsyncSession):
        await _create(db_session, alice["user"]["id"], count=2)
        notes = (await client.get("/api/v1/notifications", headers=alice["headers"])).json()["notifications"]
        response = await client.post(f"/api/v1/notifications/{notes[0]['id']}/read", headers=alice["headers"])
        assert response.status_code == 200

        count = (await client.get("/api/v1/notifications/unread-count", headers=alice["headers"])).json()
        assert count["unread_count"] == 1
        unread = (await client.get(
            "/api/v1/notifications", headers=alice["headers"], params={"unread_only": True},
        )).json()
        assert unread["total"] == 1

    @pytest.mark.asyncio
    async def test_cannot_read_others_notification(
        self, client: AsyncClient, alice: dict, bob: dict, db_session: AsyncSession,
    ):
        await _create(db_session, alice["user"]["id"])
        notes = (await client.get("/api/v1/notifications", headers=alice["headers"])).json()["notifications"]
        response = await client.post(f"/api/v1/notifications/{notes[0]['id']}/read", headers=bob["headers"])
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_mark_all_read(self, client: AsyncClient, alice: dict, db_session: AsyncSession):
        await _create(db_session, alice["user"]["id"], count=3)
        response = await client.post("/api/v1/notifications/read-all", headers=alice["headers"])
        assert response.status_code == 200
        count = (await client.get("/api/v1/notifications/unread-count", headers=alice["headers"])).json()
        assert count["unread_count"] == 0


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_invalid_type_rejected(self, alice: dict, db_session: AsyncSession):
        with pytest.raises(ValueError):
            await create_notification(db_session, alice["user"]["id"], "billing", "invoice_due", title="x")

    @pytest.mark.asyncio
    async def test_notify_derives_type_and_pushes(self, alice: dict, db_session: AsyncSession):
        redis = AsyncMock()
        notification = await notify(db_session, redis, alice["user"]["id"], "level_up", title="Rookie")
        await db_session.commit()

        assert notification.type == SUBTYPES["level_up"] == "progress"
        redis.publish.assert_awaited_once()
        channel, raw = redis.publish.await_args.args
        assert channel == f"ws:user:{alice['user']['id']}"
        assert '"channel": "notifications"' in raw

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_raise(self, alice: dict, db_session: AsyncSession):
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        notification = await notify(db_session, redis, alice["user"]["id"], "friend_request", title="Hi")
        await db_session.commit()
        assert notification.id is not None
