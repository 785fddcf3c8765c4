"""Milestone ladder seed data for streaks and cumulative XP."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.database import insert_for
from quizecon.db.models import StreakMilestone, XpMilestone

logger = logging.getLogger(__name__)

STREAK_MILESTONE_SEED_DATA: list[dict] = [
    {
        "threshold": 3,
        "xp_boost_multiplier": 1.0,
        "boost_duration_hours": 24,
        "reward_description": "3-day streak! A small taste of what's coming.",
    },
    {
        "threshold": 5,
        "xp_boost_multiplier": 1.3,
        "boost_duration_hours": 24,
        "reward_description": "5 days in a row! 30% more XP for a day.",
    },
    {
        "threshold": 7,
        "xp_boost_multiplier": 1.5,
        "boost_duration_hours": 48,
        "reward_description": "A full week! 50% more XP for two days.",
    },
    {
        "threshold": 14,
        "xp_boost_multiplier": 2.0,
        "boost_duration_hours": 72,
        "reward_description": "Two weeks straight! Double XP for three days.",
    },
    {
        "threshold": 30,
        "xp_boost_multiplier": 3.0,
        "boost_duration_hours": 168,
        "reward_description": "30-day streak! Triple XP for a week.",
    },
    {
        "threshold": 50,
        "xp_boost_multiplier": 3.0,
        "boost_duration_hours": 336,
        "reward_description": "50-day streak! Triple XP for two weeks.",
    },
    {
        "threshold": 100,
        "xp_boost_multiplier": 5.0,
        "boost_duration_hours": 168,
        "reward_description": "100-day streak! Five times the XP for a week.",
    },
]

# Every XP milestone pays out 5 free hints; none of them carry a boost.
XP_MILESTONE_SEED_DATA: list[dict] = [
    {"threshold": t, "free_hints_reward": 5, "reward_description": f"{t:,} XP reached! 5 free hints."}
    for t in (100, 500, 1000, 2500, 5000, 10000, 20000, 35000, 50000, 75000, 100000)
]


async def _upsert(db: AsyncSession, model: type, rows: list[dict]) -> int:
    seeded = 0
    for row in rows:
        stmt = insert_for(db, model).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=["threshold"],
            set_={key: getattr(stmt.excluded, key) for key in row if key != "threshold"},
        )
        await db.execute(stmt)
        seeded += 1
    return seeded


async def seed_milestones(db: AsyncSession) -> tuple[int, int]:
    """Upsert both milestone ladders. Returns (streak, xp) rows seeded."""
    streak = await _upsert(db, StreakMilestone, STREAK_MILESTONE_SEED_DATA)
    xp = await _upsert(db, XpMilestone, XP_MILESTONE_SEED_DATA)
    await db.commit()
    logger.info("Seeded %d streak milestones and %d XP milestones", streak, xp)
    return streak, xp
