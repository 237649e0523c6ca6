"""Initial schema.

Creates users, skill categories and progress, practices, the achievement
catalog, token redemptions, friends, messages, photos and notifications.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) NOT NULL,
            email VARCHAR(320) UNIQUE NOT NULL,
            password_hash VARCHAR(256) NOT NULL,
            profile_image VARCHAR(256) NOT NULL DEFAULT 'default-profile.png',
            bio VARCHAR(280),
            is_admin BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            last_login TIMESTAMPTZ,
            login_count INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- Skill Categories ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS skill_categories (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(256),
            minimum_duration INTEGER NOT NULL DEFAULT 15,
            threshold_rookie INTEGER NOT NULL DEFAULT 300,
            threshold_apprentice INTEGER NOT NULL DEFAULT 1800,
            threshold_master INTEGER NOT NULL DEFAULT 6000,
            threshold_grand_master INTEGER NOT NULL DEFAULT 18000,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            CHECK (threshold_rookie > 0
                   AND threshold_rookie < threshold_apprentice
                   AND threshold_apprentice < threshold_master
                   AND threshold_master < threshold_grand_master)
        )
    """)

    # --- Skill Progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS skill_progress (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            skill_category_id INTEGER NOT NULL REFERENCES skill_categories(id) ON DELETE CASCADE,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            total_practice_time INTEGER NOT NULL DEFAULT 0,
            last_practice_date DATE,
            level VARCHAR(16) NOT NULL DEFAULT 'Beginner',
            redeem_tokens INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT skill_progress_user_id_category_key UNIQUE (user_id, skill_category_id)
        )
    """)

    # --- Practices ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS practices (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            skill_category_id INTEGER NOT NULL REFERENCES skill_categories(id) ON DELETE CASCADE,
            duration INTEGER NOT NULL,
            image VARCHAR(256) NOT NULL,
            notes TEXT,
            qualifying BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_practices_user_created
        ON practices(user_id, created_at DESC)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(256),
            type VARCHAR(32) NOT NULL,
            threshold INTEGER NOT NULL CHECK (threshold >= 0),
            skill_specific BOOLEAN NOT NULL DEFAULT false,
            skill_category_id INTEGER REFERENCES skill_categories(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievements_type
        ON achievements(type, threshold)
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_achievements_user_id_achievement_id_key UNIQUE (user_id, achievement_id)
        )
    """)

    # --- Token Redemptions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS token_redemptions (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            skill_category_id INTEGER NOT NULL REFERENCES skill_categories(id) ON DELETE CASCADE,
            reward_id VARCHAR(64) NOT NULL,
            cost INTEGER NOT NULL,
            remaining_tokens INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Friends ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS friend_requests (
            id SERIAL PRIMARY KEY,
            sender_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            recipient_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT friend_requests_sender_recipient_key UNIQUE (sender_id, recipient_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS friendships (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            friend_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT friendships_user_id_friend_id_key UNIQUE (user_id, friend_id)
        )
    """)

    # --- Messages ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS messages (
            id SERIAL PRIMARY KEY,
            sender_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            recipient_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL DEFAULT '',
            image VARCHAR(256),
            read BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_messages_pair
        ON messages(sender_id, recipient_id, created_at)
    """)

    # --- Photos ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS photos (
            id VARCHAR(36) PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            filename VARCHAR(128) NOT NULL,
            task_name VARCHAR(128) NOT NULL DEFAULT 'Untitled Task',
            path VARCHAR(256) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id SERIAL PRIMARY KEY,
            user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(32) NOT NULL,
            subtype VARCHAR(64) NOT NULL,
            title VARCHAR(256) NOT NULL,
            description TEXT,
            action_url VARCHAR(256),
            read BOOLEAN NOT NULL DEFAULT false,
            metadata JSON NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_unread
        ON notifications(user_id, read, created_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS photos CASCADE")
    op.execute("DROP TABLE IF EXISTS messages CASCADE")
    op.execute("DROP TABLE IF EXISTS friendships CASCADE")
    op.execute("DROP TABLE IF EXISTS friend_requests CASCADE")
    op.execute("DROP TABLE IF EXISTS token_redemptions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS practices CASCADE")
    op.execute("DROP TABLE IF EXISTS skill_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS skill_categories CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
