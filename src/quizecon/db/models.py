"""ORM models for the economy and progression engine.

Tables are created by the Alembic migrations in ``alembic/versions``; the
declarations here mirror them. Constructors reject states the engine can never
legitimately produce (negative balances, unknown packs, streak inversions).
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, validates

from quizecon.db.base import Base, BigIntPK
from quizecon.payments.packs import is_known_pack


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


class Wallet(Base):
    """Spendable hint balance plus the daily free allowance, one row per user."""

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="wallets_balance_non_negative"),
        CheckConstraint("free_used_today >= 0", name="wallets_free_used_non_negative"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    free_used_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_reset_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    @validates("balance", "free_used_today")
    def _non_negative(self, key: str, value: int) -> int:
        if value is not None and value < 0:
            raise ValueError(f"{key} must be >= 0, got {value}")
        return value


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------


class PurchaseStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class Purchase(Base):
    """One checkout attempt. ``payment_session_id`` is the idempotency key."""

    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("payment_session_id", name="purchases_payment_session_id_key"),
        CheckConstraint("quantity > 0", name="purchases_quantity_positive"),
        CheckConstraint(
            "status IN ('pending', 'succeeded', 'failed')", name="purchases_status_valid"
        ),
        Index("idx_purchases_user", "user_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payment_session_id: Mapped[str] = mapped_column(String(255), nullable=False)
    pack_key: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=PurchaseStatus.PENDING.value, server_default="pending"
    )
    consent: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @validates("pack_key")
    def _known_pack(self, _key: str, value: str) -> str:
        if not is_known_pack(value):
            raise ValueError(f"Unknown pack key: {value}")
        return value

    @validates("quantity")
    def _positive_quantity(self, _key: str, value: int) -> int:
        if value <= 0:
            raise ValueError(f"quantity must be > 0, got {value}")
        return value

    @validates("status")
    def _valid_status(self, _key: str, value: str) -> str:
        return PurchaseStatus(value).value


# ---------------------------------------------------------------------------
# Milestone ladders (reference data)
# ---------------------------------------------------------------------------


class StreakMilestone(Base):
    """Streak-length threshold that activates an XP boost."""

    __tablename__ = "streak_milestones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    reward_description: Mapped[str] = mapped_column(Text, nullable=False)
    xp_boost_multiplier: Mapped[float] = mapped_column(Float, nullable=False, server_default="1.0")
    boost_duration_hours: Mapped[int] = mapped_column(Integer, nullable=False, server_default="24")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class XpMilestone(Base):
    """Cumulative-XP threshold; crossing it credits free hints and optionally a boost."""

    __tablename__ = "xp_milestones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    reward_description: Mapped[str] = mapped_column(Text, nullable=False)
    xp_boost_multiplier: Mapped[float] = mapped_column(Float, nullable=False, server_default="1.0")
    boost_duration_hours: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    free_hints_reward: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))


class MilestoneAchievement(Base):
    """History of granted milestone rewards, for display only."""

    __tablename__ = "milestone_achievements"
    __table_args__ = (Index("idx_milestone_achievements_user", "user_id", "achieved_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    milestone_type: Mapped[str] = mapped_column(String(16), nullable=False)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_description: Mapped[str] = mapped_column(Text, nullable=False)
    xp_boost_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    boost_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    free_hints_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    achieved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


# ---------------------------------------------------------------------------
# User progress
# ---------------------------------------------------------------------------


class UserProgress(Base):
    """Denormalized progression state, one row per user."""

    __tablename__ = "user_progress"
    __table_args__ = (
        CheckConstraint("longest_streak >= current_streak", name="user_progress_longest_ge_current"),
        CheckConstraint("xp >= 0", name="user_progress_xp_non_negative"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # --- Streak ---
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_streak_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    daily_goal_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    daily_goal_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    # --- Milestones / boost ---
    last_streak_milestone: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    last_xp_milestone: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    xp_boost_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0, server_default="1.0")
    xp_boost_expiry: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # --- Ranked lifetime totals ---
    ranked_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ranked_questions_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ranked_correct_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ranked_sessions_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    ranked_time_ms_total: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )

    @validates("xp", "current_streak", "longest_streak")
    def _non_negative(self, key: str, value: int) -> int:
        if value is not None and value < 0:
            raise ValueError(f"{key} must be >= 0, got {value}")
        return value


# ---------------------------------------------------------------------------
# Ranked mode
# ---------------------------------------------------------------------------


class RankedSession(Base):
    """One continuous ranked play session. Closing is terminal."""

    __tablename__ = "ranked_sessions"
    __table_args__ = (
        Index("idx_ranked_sessions_user_active", "user_id", "is_active"),
        # At most one active session per user (partial unique index on Postgres).
        Index(
            "uq_ranked_sessions_one_active",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    starting_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    questions_answered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_time_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class RankedAttempt(Base):
    """Audit row for each answered ranked question."""

    __tablename__ = "ranked_attempts"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("ranked_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    difficulty: Mapped[int] = mapped_column(Integer, nullable=False)
    elapsed_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    hints_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    score_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )


class LeaderboardEntry(Base):
    """Per-user ranked standing. Ordered by total_score DESC, achieved_at ASC."""

    __tablename__ = "ranked_leaderboard"
    __table_args__ = (Index("idx_ranked_leaderboard_order", "total_score", "achieved_at"),)

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    session_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    questions_answered: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_answers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    accuracy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    average_time_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    achieved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now()
    )
