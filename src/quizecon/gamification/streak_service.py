"""Daily streak tracking.

The transition itself is a pure function over a small state record so the
calendar rules can be tested without a database; ``update_streak`` applies it
to a locked progress row and runs the streak milestone check in the same
transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.config import get_settings
from quizecon.day_utils import hours_since_day_start, local_today, utcnow
from quizecon.db.models import UserProgress
from quizecon.gamification.milestone_service import (
    MilestoneGrant,
    XpBoost,
    boost_state,
    check_streak_milestone,
)
from quizecon.gamification.progress import get_or_create_progress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    current_streak_start: date | None = None


@dataclass(frozen=True)
class StreakTransition:
    state: StreakState
    changed: bool
    reset: bool = False


@dataclass(frozen=True)
class StreakResult:
    current_streak: int
    longest_streak: int
    changed: bool
    reset: bool
    milestone: MilestoneGrant | None
    boost: XpBoost


def streak_expired(last_activity_date: date | None, now: datetime, reset_after_hours: int) -> bool:
    """True when more than the reset window has passed since the start of the last active day."""
    if last_activity_date is None:
        return False
    return hours_since_day_start(last_activity_date, now) > reset_after_hours


def advance_streak(state: StreakState, today: date, now: datetime, reset_after_hours: int) -> StreakTransition:
    """Apply one qualifying activity on ``today`` to ``state``."""
    last = state.last_activity_date

    if last is None:
        return StreakTransition(
            state=StreakState(
                current_streak=1,
                longest_streak=max(state.longest_streak, 1),
                last_activity_date=today,
                current_streak_start=today,
            ),
            changed=True,
        )

    if last >= today:
        return StreakTransition(state=state, changed=False)

    continues = last == today - timedelta(days=1) or not streak_expired(last, now, reset_after_hours)
    if not continues or state.current_streak <= 0:
        return StreakTransition(
            state=StreakState(
                current_streak=1,
                longest_streak=max(state.longest_streak, 1),
                last_activity_date=today,
                current_streak_start=today,
            ),
            changed=True,
            reset=state.current_streak > 0,
        )

    # Yesterday, or a longer gap that is still inside the reset window.
    streak = state.current_streak + 1
    return StreakTransition(
        state=replace(
            state,
            current_streak=streak,
            longest_streak=max(state.longest_streak, streak),
            last_activity_date=today,
            current_streak_start=state.current_streak_start or today,
        ),
        changed=True,
    )


def effective_streak(progress: UserProgress, now: datetime) -> int:
    """Streak as the user should see it: an expired run reads as 0 until the next activity."""
    if streak_expired(progress.last_activity_date, now, get_settings().streak_reset_hours):
        return 0
    return progress.current_streak


def _state_of(progress: UserProgress) -> StreakState:
    return StreakState(
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        last_activity_date=progress.last_activity_date,
        current_streak_start=progress.current_streak_start,
    )


async def update_streak(
    db: AsyncSession,
    progress: UserProgress,
    now: datetime,
) -> tuple[StreakTransition, MilestoneGrant | None]:
    """Advance the streak on a locked progress row and grant any streak milestone. No commit."""
    settings = get_settings()
    transition = advance_streak(_state_of(progress), local_today(now), now, settings.streak_reset_hours)
    if not transition.changed:
        return transition, None

    new = transition.state
    progress.longest_streak = new.longest_streak
    progress.current_streak = new.current_streak
    progress.last_activity_date = new.last_activity_date
    progress.current_streak_start = new.current_streak_start
    progress.updated_at = now
    if transition.reset:
        # A new run can earn the same streak milestones again.
        progress.last_streak_milestone = 0
        logger.info("Streak reset for %s", progress.user_id)

    milestone = await check_streak_milestone(db, progress, now)
    return transition, milestone


async def check_streak(db: AsyncSession, user_id: str, now: datetime | None = None) -> StreakResult:
    """Record a qualifying activity for today and return the resulting streak state."""
    if now is None:
        now = utcnow()
    progress = await get_or_create_progress(db, user_id, lock=True, now=now)
    transition, milestone = await update_streak(db, progress, now)
    await db.commit()

    if transition.changed:
        logger.info("Streak for %s is now %d", user_id, progress.current_streak)
    return StreakResult(
        current_streak=progress.current_streak,
        longest_streak=progress.longest_streak,
        changed=transition.changed,
        reset=transition.reset,
        milestone=milestone,
        boost=boost_state(progress, now),
    )
