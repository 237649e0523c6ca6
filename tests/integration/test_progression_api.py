"""Integration tests: skill categories, achievements and token rewards."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import PNG_B64, PNG_DATA_URL, category_id
from skillforge.config import Reward, get_settings
from skillforge.db.models import SkillProgress, User
from skillforge.practice.service import submit_practice
from skillforge.progression.seed import ACHIEVEMENT_SEED_DATA, CATEGORY_SEED_DATA, seed_all


class TestSkillCategories:
    @pytest.mark.asyncio
    async def test_seeded_categories(self, client: AsyncClient):
        response = await client.get("/api/v1/skill-categories")
        assert response.status_code == 200
        names = {c["name"] for c in response.json()}
        assert names == {c["name"] for c in CATEGORY_SEED_DATA}
        music = next(c for c in response.json() if c["name"] == "Music")
        assert music["thresholds"] == {"rookie": 300, "apprentice": 1800, "master": 6000, "grand_master": 18000}

    @pytest.mark.asyncio
    async def test_seeding_is_idempotent(self, client: AsyncClient, db_session: AsyncSession):
        await seed_all(db_session)
        categories = (await client.get("/api/v1/skill-categories")).json()
        achievements = (await client.get("/api/v1/achievements")).json()
        assert len(categories) == len(CATEGORY_SEED_DATA)
        assert len(achievements) == len(ACHIEVEMENT_SEED_DATA)

    @pytest.mark.asyncio
    async def test_admin_creates_category(self, client: AsyncClient, admin: dict):
        response = await client.post("/api/v1/skill-categories", headers=admin["headers"], json={
            "name": "Chess",
            "description": "Openings, tactics, endgames",
            "icon": PNG_DATA_URL,
            "minimum_duration": 30,
            "thresholds": {"rookie": 100, "apprentice": 500, "master": 2000, "grand_master": 5000},
        })
        assert response.status_code == 201, response.text
        data = response.json()
        assert data["name"] == "Chess"
        assert data["minimum_duration"] == 30
        assert data["icon"].startswith("/uploads/icons/")
        assert data["thresholds"]["grand_master"] == 5000

    @pytest.mark.asyncio
    async def test_minimum_duration_defaults_to_setting(
        self, client: AsyncClient, admin: dict, monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(get_settings(), "default_minimum_duration", 25)
        response = await client.post("/api/v1/skill-categories", headers=admin["headers"], json={
            "name": "Chess",
            "description": "Openings, tactics, endgames",
        })
        assert response.status_code == 201, response.text
        assert response.json()["minimum_duration"] == 25

    @pytest.mark.asyncio
    async def test_category_thresholds_drive_levels(self, client: AsyncClient, admin: dict):
        response = await client.post("/api/v1/skill-categories", headers=admin["headers"], json={
            "name": "Chess",
            "description": "Openings, tactics, endgames",
            "minimum_duration": 10,
            "thresholds": {"rookie": 20, "apprentice": 40, "master": 60, "grand_master": 80},
        })
        chess = response.json()["id"]
        practice = await client.post("/api/v1/practice", headers=admin["headers"], json={
            "skill_category_id": chess, "duration": 45, "image": PNG_B64,
        })
        assert practice.json()["progress"]["level"] == "Apprentice"

    @pytest.mark.asyncio
    async def test_thresholds_must_increase(self, client: AsyncClient, admin: dict):
        response = await client.post("/api/v1/skill-categories", headers=admin["headers"], json={
            "name": "Chess",
            "description": "x",
            "thresholds": {"rookie": 100, "apprentice": 100, "master": 2000, "grand_master": 5000},
        })
        assert response.status_code == 400
        assert "strictly increasing" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_duplicate_category(self, client: AsyncClient, admin: dict):
        response = await client.post("/api/v1/skill-categories", headers=admin["headers"], json={
            "name": "Music", "description": "again",
        })
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client: AsyncClient, alice: dict):
        response = await client.post("/api/v1/skill-categories", headers=alice["headers"], json={
            "name": "Chess", "description": "x",
        })
        assert response.status_code == 403
        assert response.json()["detail"] == "Admin access required"


class TestAchievements:
    @pytest.mark.asyncio
    async def test_catalog(self, client: AsyncClient):
        data = (await client.get("/api/v1/achievements")).json()
        by_name = {a["name"]: a for a in data}
        assert by_name["Week Warrior"]["type"] == "streak"
        assert by_name["Week Warrior"]["threshold"] == 7
        assert by_name["Week Warrior"]["skill_specific"] is False
        assert by_name["Virtuoso in Training"]["skill_specific"] is True
        assert by_name["Virtuoso in Training"]["skill_category_name"] == "Music"

    @pytest.mark.asyncio
    async def test_admin_creates_skill_specific_achievement(self, client: AsyncClient, admin: dict):
        drawing = await category_id(client, "Drawing")
        response = await client.post("/api/v1/achievements", headers=admin["headers"], json={
            "name": "Sketchbook",
            "description": "Draw for 30 minutes in total",
            "type": "practice_time",
            "threshold": 30,
            "skill_category_id": drawing,
        })
        assert response.status_code == 201, response.text
        assert response.json()["skill_category_name"] == "Drawing"

        practice = await client.post("/api/v1/practice", headers=admin["headers"], json={
            "skill_category_id": drawing, "duration": 30, "image": PNG_B64,
        })
        assert [a["name"] for a in practice.json()["unlocked_achievements"]] == ["Sketchbook"]

        music = await category_id(client, "Music")
        other = await client.post("/api/v1/practice", headers=admin["headers"], json={
            "skill_category_id": music, "duration": 30, "image": PNG_B64,
        })
        assert other.json()["unlocked_achievements"] == []

    @pytest.mark.asyncio
    async def test_invalid_type(self, client: AsyncClient, admin: dict):
        response = await client.post("/api/v1/achievements", headers=admin["headers"], json={
            "name": "Bogus", "description": "x", "type": "hashrate", "threshold": 1,
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unlocks_are_not_repeated(self, client: AsyncClient, alice: dict):
        music = await category_id(client, "Music")
        for _ in range(3):
            await client.post("/api/v1/practice", headers=alice["headers"], json={
                "skill_category_id": music, "duration": 60, "image": PNG_B64,
            })
        mine = (await client.get("/api/v1/achievements/me", headers=alice["headers"])).json()
        ids = [u["achievement"]["id"] for u in mine]
        assert len(ids) == len(set(ids))
        assert {u["achievement"]["name"] for u in mine} == {"First Hour"}


class TestRewards:
    @pytest.mark.asyncio
    async def test_catalog(self, client: AsyncClient):
        data = (await client.get("/api/v1/rewards")).json()
        assert {r["id"]: r["cost"] for r in data} == {
            "custom_badge": 10,
            "profile_theme": 15,
            "streak_protection": 20,
        }

    @pytest.mark.asyncio
    async def test_catalog_comes_from_settings(
        self, client: AsyncClient, alice: dict, monkeypatch: pytest.MonkeyPatch,
    ):
        monkeypatch.setattr(get_settings(), "rewards", [
            Reward(id="practice_journal", name="Practice Journal", description="A printed journal", cost=3),
        ])
        data = (await client.get("/api/v1/rewards")).json()
        assert data == [{"id": "practice_journal", "name": "Practice Journal", "description": "A printed journal", "cost": 3}]

        music = await category_id(client, "Music")
        await client.post("/api/v1/practice", headers=alice["headers"], json={
            "skill_category_id": music, "duration": 20, "image": PNG_B64,
        })
        response = await client.post("/api/v1/rewards/redeem", headers=alice["headers"], json={
            "skill_category_id": music, "reward_id": "custom_badge",
        })
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_insufficient_tokens(self, client: AsyncClient, alice: dict):
        music = await category_id(client, "Music")
        await client.post("/api/v1/practice", headers=alice["headers"], json={
            "skill_category_id": music, "duration": 20, "image": PNG_B64,
        })
        response = await client.post("/api/v1/rewards/redeem", headers=alice["headers"], json={
            "skill_category_id": music, "reward_id": "custom_badge",
        })
        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient tokens"

    @pytest.mark.asyncio
    async def test_unknown_reward_and_skill(self, client: AsyncClient, alice: dict):
        music = await category_id(client, "Music")
        response = await client.post("/api/v1/rewards/redeem", headers=alice["headers"], json={
            "skill_category_id": music, "reward_id": "custom_badge",
        })
        assert response.status_code == 404
        assert response.json()["detail"] == "Skill not found"

        await client.post("/api/v1/practice", headers=alice["headers"], json={
            "skill_category_id": music, "duration": 20, "image": PNG_B64,
        })
        response = await client.post("/api/v1/rewards/redeem", headers=alice["headers"], json={
            "skill_category_id": music, "reward_id": "golden_piano",
        })
        assert response.status_code == 404
        assert response.json()["detail"] == "Reward not found"

    @pytest.mark.asyncio
    async def test_redeem_spends_tokens(self, client: AsyncClient, alice: dict, db_session: AsyncSession):
        music = await category_id(client, "Music")
        user = await db_session.get(User, alice["user"]["id"])
        await submit_practice(db_session, None, user, music, 20, PNG_B64, now=datetime.now(timezone.utc))
        progress = (await db_session.execute(
            select(SkillProgress).where(SkillProgress.user_id == user.id)
        )).unique().scalar_one()
        progress.redeem_tokens = 12
        await db_session.commit()

        response = await client.post("/api/v1/rewards/redeem", headers=alice["headers"], json={
            "skill_category_id": music, "reward_id": "custom_badge",
        })
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["reward"]["id"] == "custom_badge"
        assert data["remaining_tokens"] == 2
        assert data["skill"]["redeem_tokens"] == 2

        history = (await client.get("/api/v1/rewards/redemptions", headers=alice["headers"])).json()
        assert len(history) == 1
        assert history[0]["cost"] == 10
        assert history[0]["remaining_tokens"] == 2

        notifications = (await client.get("/api/v1/notifications", headers=alice["headers"])).json()
        assert any(n["subtype"] == "token_redeemed" for n in notifications["notifications"])

    @pytest.mark.asyncio
    async def test_streak_tokens_then_redeem(self, client: AsyncClient, alice: dict, db_session: AsyncSession):
        """Ten consecutive days earn two tokens, one per five-day step."""
        music = await category_id(client, "Music")
        user = await db_session.get(User, alice["user"]["id"])
        start = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        for day in range(10):
            outcome = await submit_practice(
                db_session, None, user, music, 15, PNG_B64, now=start + timedelta(days=day),
            )
            await db_session.commit()
        assert outcome.progress.redeem_tokens == 2

        notifications = (await client.get(
            "/api/v1/notifications", headers=alice["headers"], params={"per_page": 100},
        )).json()
        assert sum(n["subtype"] == "token_earned" for n in notifications["notifications"]) == 2
