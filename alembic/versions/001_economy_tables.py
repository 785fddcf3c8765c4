"""Economy and progression tables.

Creates wallets, purchases, the streak and XP milestone ladders,
user_progress, milestone_achievements, ranked_sessions, ranked_attempts
and ranked_leaderboard.

Revision ID: 001_economy_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_economy_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Wallets ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS wallets (
            user_id VARCHAR(64) PRIMARY KEY,
            balance INTEGER NOT NULL DEFAULT 0,
            free_used_today INTEGER NOT NULL DEFAULT 0,
            last_reset_date DATE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT wallets_balance_non_negative CHECK (balance >= 0),
            CONSTRAINT wallets_free_used_non_negative CHECK (free_used_today >= 0)
        )
    """)

    # --- Purchases ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS purchases (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            payment_session_id VARCHAR(255) NOT NULL,
            pack_key VARCHAR(32) NOT NULL,
            quantity INTEGER NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            consent JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            completed_at TIMESTAMPTZ,
            CONSTRAINT purchases_payment_session_id_key UNIQUE (payment_session_id),
            CONSTRAINT purchases_quantity_positive CHECK (quantity > 0),
            CONSTRAINT purchases_status_valid CHECK (status IN ('pending', 'succeeded', 'failed'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_purchases_user
        ON purchases(user_id)
    """)

    # --- Milestone ladders ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streak_milestones (
            id SERIAL PRIMARY KEY,
            threshold INTEGER UNIQUE NOT NULL,
            reward_description TEXT NOT NULL,
            xp_boost_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            boost_duration_hours INTEGER NOT NULL DEFAULT 24,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_milestones (
            id SERIAL PRIMARY KEY,
            threshold INTEGER UNIQUE NOT NULL,
            reward_description TEXT NOT NULL,
            xp_boost_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            boost_duration_hours INTEGER NOT NULL DEFAULT 0,
            free_hints_reward INTEGER NOT NULL DEFAULT 0,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)

    # --- User progress ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_progress (
            user_id VARCHAR(64) PRIMARY KEY,
            xp INTEGER NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            longest_streak INTEGER NOT NULL DEFAULT 0,
            last_activity_date DATE,
            current_streak_start DATE,
            daily_goal_date DATE,
            daily_goal_progress INTEGER NOT NULL DEFAULT 0,
            last_streak_milestone INTEGER NOT NULL DEFAULT 0,
            last_xp_milestone INTEGER NOT NULL DEFAULT 0,
            xp_boost_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            xp_boost_expiry TIMESTAMPTZ,
            ranked_score INTEGER NOT NULL DEFAULT 0,
            ranked_questions_total INTEGER NOT NULL DEFAULT 0,
            ranked_correct_total INTEGER NOT NULL DEFAULT 0,
            ranked_sessions_played INTEGER NOT NULL DEFAULT 0,
            ranked_time_ms_total BIGINT NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT user_progress_longest_ge_current CHECK (longest_streak >= current_streak),
            CONSTRAINT user_progress_xp_non_negative CHECK (xp >= 0)
        )
    """)

    # --- Milestone achievements (history) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS milestone_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            milestone_type VARCHAR(16) NOT NULL,
            threshold INTEGER NOT NULL,
            reward_description TEXT NOT NULL,
            xp_boost_multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            boost_expiry TIMESTAMPTZ,
            free_hints_reward INTEGER NOT NULL DEFAULT 0,
            achieved_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_milestone_achievements_user
        ON milestone_achievements(user_id, achieved_at)
    """)

    # --- Ranked sessions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS ranked_sessions (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(64) NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            started_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            ended_at TIMESTAMPTZ,
            starting_score INTEGER NOT NULL DEFAULT 0,
            total_score INTEGER NOT NULL DEFAULT 0,
            questions_answered INTEGER NOT NULL DEFAULT 0,
            correct_answers INTEGER NOT NULL DEFAULT 0,
            total_time_ms BIGINT NOT NULL DEFAULT 0
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_ranked_sessions_user_active
        ON ranked_sessions(user_id, is_active)
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS uq_ranked_sessions_one_active
        ON ranked_sessions(user_id)
        WHERE is_active
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS ranked_attempts (
            id BIGSERIAL PRIMARY KEY,
            session_id VARCHAR(36) NOT NULL REFERENCES ranked_sessions(id) ON DELETE CASCADE,
            difficulty INTEGER NOT NULL,
            elapsed_ms BIGINT NOT NULL,
            hints_used INTEGER NOT NULL DEFAULT 0,
            is_correct BOOLEAN NOT NULL,
            score_delta INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_ranked_attempts_session_id
        ON ranked_attempts(session_id)
    """)

    # --- Ranked leaderboard ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS ranked_leaderboard (
            user_id VARCHAR(64) PRIMARY KEY,
            session_id VARCHAR(36),
            total_score INTEGER NOT NULL,
            questions_answered INTEGER NOT NULL DEFAULT 0,
            correct_answers INTEGER NOT NULL DEFAULT 0,
            accuracy DOUBLE PRECISION NOT NULL DEFAULT 0,
            average_time_ms INTEGER NOT NULL DEFAULT 0,
            achieved_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_ranked_leaderboard_order
        ON ranked_leaderboard(total_score DESC, achieved_at ASC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ranked_leaderboard CASCADE")
    op.execute("DROP TABLE IF EXISTS ranked_attempts CASCADE")
    op.execute("DROP TABLE IF EXISTS ranked_sessions CASCADE")
    op.execute("DROP TABLE IF EXISTS milestone_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS user_progress CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_milestones CASCADE")
    op.execute("DROP TABLE IF EXISTS streak_milestones CASCADE")
    op.execute("DROP TABLE IF EXISTS purchases CASCADE")
    op.execute("DROP TABLE IF EXISTS wallets CASCADE")
