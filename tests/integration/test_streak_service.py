"""Streak updates and streak milestone grants against a real database."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.gamification.milestone_service import MILESTONE_STREAK, get_active_xp_boost, list_achievements
from quizecon.gamification.progress import get_or_create_progress
from quizecon.gamification.streak_service import check_streak

pytestmark = pytest.mark.asyncio


async def _set_progress(db: AsyncSession, user_id: str, now, **fields) -> None:
    progress = await get_or_create_progress(db, user_id, now=now)
    for key, value in fields.items():
        setattr(progress, key, value)
    await db.commit()


async def test_first_check_starts_streak(db_session, now):
    result = await check_streak(db_session, "user-1", now)
    assert result.current_streak == 1
    assert result.longest_streak == 1
    assert result.changed is True
    assert result.milestone is None


async def test_second_check_same_day_is_idempotent(db_session, now):
    await check_streak(db_session, "user-1", now)
    again = await check_streak(db_session, "user-1", now + timedelta(hours=5))
    assert again.changed is False
    assert again.current_streak == 1


async def test_consecutive_days_build_streak(db_session, now):
    for day in range(4):
        result = await check_streak(db_session, "user-1", now + timedelta(days=day))
    assert result.current_streak == 4
    assert result.longest_streak == 4


async def test_streak_six_to_seven_activates_boost(db_session, now):
    await _set_progress(
        db_session, "user-1", now,
        current_streak=6,
        longest_streak=6,
        last_activity_date=(now - timedelta(days=1)).date(),
        current_streak_start=(now - timedelta(days=6)).date(),
        last_streak_milestone=5,
    )
    assert (await get_active_xp_boost(db_session, "user-1", now)).active is False

    result = await check_streak(db_session, "user-1", now)
    assert result.current_streak == 7
    assert result.milestone is not None
    assert result.milestone.threshold == 7
    assert result.milestone.boost_applied is True
    assert result.milestone.boost_expiry == now + timedelta(hours=48)
    assert result.boost.active is True
    assert result.boost.multiplier == 1.5
    assert result.boost.expiry == now + timedelta(hours=48)

    boost = await get_active_xp_boost(db_session, "user-1", now + timedelta(hours=47))
    assert boost.active is True
    assert (await get_active_xp_boost(db_session, "user-1", now + timedelta(hours=48))).active is False

    achievements = await list_achievements(db_session, "user-1")
    assert [(a.milestone_type, a.threshold) for a in achievements] == [(MILESTONE_STREAK, 7)]


async def test_milestone_granted_once_per_run(db_session, now):
    await _set_progress(
        db_session, "user-1", now,
        current_streak=2,
        longest_streak=2,
        last_activity_date=(now - timedelta(days=1)).date(),
    )
    granted = await check_streak(db_session, "user-1", now)
    assert granted.milestone.threshold == 3
    assert granted.milestone.boost_applied is False
    assert granted.milestone.boost_expiry is None

    next_day = await check_streak(db_session, "user-1", now + timedelta(days=1))
    assert next_day.current_streak == 4
    assert next_day.milestone is None


async def test_missed_days_reset_streak_and_milestone_marker(db_session, now):
    await _set_progress(
        db_session, "user-1", now,
        current_streak=7,
        longest_streak=7,
        last_activity_date=(now - timedelta(days=3)).date(),
        last_streak_milestone=7,
    )

    result = await check_streak(db_session, "user-1", now)
    assert result.reset is True
    assert result.current_streak == 1
    assert result.longest_streak == 7

    progress = await get_or_create_progress(db_session, "user-1", now=now)
    assert progress.last_streak_milestone == 0


async def test_milestones_can_be_earned_again_after_reset(db_session, now):
    await _set_progress(
        db_session, "user-1", now,
        current_streak=4,
        longest_streak=4,
        last_activity_date=(now - timedelta(days=5)).date(),
        last_streak_milestone=3,
    )
    for day in range(3):
        result = await check_streak(db_session, "user-1", now + timedelta(days=day))
    assert result.current_streak == 3
    assert result.milestone is not None
    assert result.milestone.threshold == 3


async def test_weaker_milestone_boost_does_not_replace_stronger(db_session, now):
    await _set_progress(
        db_session, "user-1", now,
        current_streak=6,
        longest_streak=6,
        last_activity_date=(now - timedelta(days=1)).date(),
        last_streak_milestone=5,
        xp_boost_multiplier=2.0,
        xp_boost_expiry=now + timedelta(hours=10),
    )

    result = await check_streak(db_session, "user-1", now)
    assert result.milestone.threshold == 7
    assert result.milestone.boost_applied is False
    assert result.milestone.boost_expiry is None
    assert result.boost.multiplier == 2.0
    assert result.boost.expiry == now + timedelta(hours=10)

    achievements = await list_achievements(db_session, "user-1")
    assert [(a.threshold, a.boost_expiry) for a in achievements] == [(7, None)]
