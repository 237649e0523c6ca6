"""Seed data: default skill categories and the achievement catalog."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from skillforge.db.models import Achievement, SkillCategory

logger = logging.getLogger(__name__)

CATEGORY_SEED_DATA: list[dict] = [
    {
        "name": "Music",
        "description": "Instrument practice, singing, ear training",
        "icon": "music.svg",
        "minimum_duration": 15,
    },
    {
        "name": "Drawing",
        "description": "Sketching, painting, digital art",
        "icon": "drawing.svg",
        "minimum_duration": 15,
    },
    {
        "name": "Programming",
        "description": "Coding exercises, side projects, reading code",
        "icon": "programming.svg",
        "minimum_duration": 20,
    },
    {
        "name": "Languages",
        "description": "Vocabulary, grammar, conversation practice",
        "icon": "languages.svg",
        "minimum_duration": 10,
    },
    {
        "name": "Fitness",
        "description": "Strength, cardio, mobility",
        "icon": "fitness.svg",
        "minimum_duration": 20,
    },
]

# "category" binds a skill-specific achievement to a seeded category by name
ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Streaks
    {"name": "Getting Started", "description": "Practice 3 days in a row", "icon": "streak-3.svg",
     "type": "streak", "threshold": 3},
    {"name": "Week Warrior", "description": "Practice 7 days in a row", "icon": "streak-7.svg",
     "type": "streak", "threshold": 7},
    {"name": "Habit Formed", "description": "Practice 30 days in a row", "icon": "streak-30.svg",
     "type": "streak", "threshold": 30},
    {"name": "Unstoppable", "description": "Practice 100 days in a row", "icon": "streak-100.svg",
     "type": "streak", "threshold": 100},
    # Practice time (minutes)
    {"name": "First Hour", "description": "Practice for a total of 60 minutes in one skill",
     "icon": "time-60.svg", "type": "practice_time", "threshold": 60},
    {"name": "Dedicated", "description": "Practice for a total of 10 hours in one skill",
     "icon": "time-600.svg", "type": "practice_time", "threshold": 600},
    {"name": "Committed", "description": "Practice for a total of 50 hours in one skill",
     "icon": "time-3000.svg", "type": "practice_time", "threshold": 3000},
    {"name": "Ten Thousand Minutes", "description": "Practice for a total of 10,000 minutes in one skill",
     "icon": "time-10000.svg", "type": "practice_time", "threshold": 10000},
    # Skill-specific
    {"name": "Virtuoso in Training", "description": "Practice music for 100 hours",
     "icon": "music-6000.svg", "type": "practice_time", "threshold": 6000, "category": "Music"},
    {"name": "Code Streak", "description": "Program 14 days in a row",
     "icon": "programming-14.svg", "type": "streak", "threshold": 14, "category": "Programming"},
]


async def seed_categories(db: AsyncSession) -> int:
    """Insert missing default categories. Returns number inserted."""
    existing = set((await db.execute(select(SkillCategory.name))).scalars().all())
    now = datetime.now(timezone.utc)
    inserted = 0
    for data in CATEGORY_SEED_DATA:
        if data["name"] in existing:
            continue
        db.add(SkillCategory(**data, created_at=now))
        inserted += 1
    await db.flush()
    return inserted


async def seed_achievements(db: AsyncSession) -> int:
    """Insert missing catalog achievements. Returns number inserted."""
    existing = set((await db.execute(select(Achievement.name))).scalars().all())
    categories = {
        c.name: c.id for c in (await db.execute(select(SkillCategory))).scalars().all()
    }
    now = datetime.now(timezone.utc)
    inserted = 0
    for data in ACHIEVEMENT_SEED_DATA:
        if data["name"] in existing:
            continue
        values = dict(data)
        category_name = values.pop("category", None)
        category_id = categories.get(category_name) if category_name else None
        if category_name and category_id is None:
            logger.warning("Skipping %s: category %s not found", values["name"], category_name)
            continue
        db.add(Achievement(
            **values,
            skill_specific=category_id is not None,
            skill_category_id=category_id,
            created_at=now,
        ))
        inserted += 1
    await db.flush()
    return inserted


async def seed_all(db: AsyncSession) -> None:
    categories = await seed_categories(db)
    achievements = await seed_achievements(db)
    await db.commit()
    logger.info("Seeded %d skill categories and %d achievements", categories, achievements)
