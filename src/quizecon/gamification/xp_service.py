"""Learning-mode answer flow: daily goal, streak, boost, XP and XP milestones.

Order matters: the streak is advanced before the boost is read so a milestone
unlocked by this very answer already scales its XP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.config import get_settings
from quizecon.day_utils import local_today, utcnow
from quizecon.db.models import MilestoneAchievement, UserProgress
from quizecon.gamification.milestone_service import (
    MilestoneGrant,
    NextMilestone,
    XpBoost,
    boost_state,
    check_xp_milestones,
    get_next_streak_milestone,
    get_next_xp_milestone,
    list_achievements,
)
from quizecon.gamification.progress import get_or_create_progress
from quizecon.gamification.scoring import apply_xp_boost, compute_learning_xp, validate_answer
from quizecon.gamification.streak_service import effective_streak, update_streak

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerResult:
    correct: bool
    base_xp: int
    xp_awarded: int
    total_xp: int
    boost: XpBoost
    current_streak: int
    streak_changed: bool
    daily_goal_progress: int
    daily_goal_target: int
    streak_milestone: MilestoneGrant | None = None
    xp_milestones: list[MilestoneGrant] = field(default_factory=list)
    next_xp_milestone: NextMilestone | None = None


@dataclass(frozen=True)
class ProgressSummary:
    xp: int
    current_streak: int
    longest_streak: int
    daily_goal_progress: int
    daily_goal_target: int
    boost: XpBoost
    next_streak_milestone: NextMilestone | None
    next_xp_milestone: NextMilestone | None
    recent_achievements: list[MilestoneAchievement]


def _count_toward_daily_goal(progress: UserProgress, now: datetime, goal: int) -> int:
    today = local_today(now)
    if progress.daily_goal_date != today:
        progress.daily_goal_date = today
        progress.daily_goal_progress = 0
    progress.daily_goal_progress = min(goal, progress.daily_goal_progress + 1)
    return progress.daily_goal_progress


def _goal_progress_today(progress: UserProgress, now: datetime) -> int:
    if progress.daily_goal_date != local_today(now):
        return 0
    return progress.daily_goal_progress


async def record_answer(
    db: AsyncSession,
    user_id: str,
    difficulty: int,
    hints_used: int,
    elapsed_ms: int,
    correct: bool,
    now: datetime | None = None,
) -> AnswerResult:
    """Award XP for a learning-mode answer. Incorrect answers change nothing."""
    validate_answer(difficulty, hints_used, elapsed_ms)
    if now is None:
        now = utcnow()
    goal = get_settings().daily_question_goal

    progress = await get_or_create_progress(db, user_id, lock=True, now=now)
    if not correct:
        await db.commit()
        return AnswerResult(
            correct=False,
            base_xp=0,
            xp_awarded=0,
            total_xp=progress.xp,
            boost=boost_state(progress, now),
            current_streak=effective_streak(progress, now),
            streak_changed=False,
            daily_goal_progress=_goal_progress_today(progress, now),
            daily_goal_target=goal,
        )

    streak_changed = False
    streak_milestone = None
    if _count_toward_daily_goal(progress, now, goal) >= goal:
        transition, streak_milestone = await update_streak(db, progress, now)
        streak_changed = transition.changed

    boost = boost_state(progress, now)
    base_xp = compute_learning_xp(difficulty, hints_used, elapsed_ms)
    awarded = apply_xp_boost(base_xp, boost.multiplier) if boost.active else base_xp

    progress.xp += awarded
    progress.updated_at = now
    milestones = await check_xp_milestones(db, progress, now)
    await db.commit()

    logger.info("Awarded %d XP to %s (base %d, boost x%.2f)", awarded, user_id, base_xp, boost.multiplier)
    return AnswerResult(
        correct=True,
        base_xp=base_xp,
        xp_awarded=awarded,
        total_xp=progress.xp,
        boost=boost,
        current_streak=progress.current_streak,
        streak_changed=streak_changed,
        daily_goal_progress=progress.daily_goal_progress,
        daily_goal_target=goal,
        streak_milestone=streak_milestone,
        xp_milestones=milestones.granted,
        next_xp_milestone=milestones.next_milestone,
    )


async def get_progress_summary(db: AsyncSession, user_id: str, now: datetime | None = None) -> ProgressSummary:
    if now is None:
        now = utcnow()
    progress = await get_or_create_progress(db, user_id, now=now)
    await db.commit()
    streak = effective_streak(progress, now)
    return ProgressSummary(
        xp=progress.xp,
        current_streak=streak,
        longest_streak=progress.longest_streak,
        daily_goal_progress=_goal_progress_today(progress, now),
        daily_goal_target=get_settings().daily_question_goal,
        boost=boost_state(progress, now),
        next_streak_milestone=await get_next_streak_milestone(db, streak),
        next_xp_milestone=await get_next_xp_milestone(db, progress.xp),
        recent_achievements=await list_achievements(db, user_id),
    )


async def reset_progress(db: AsyncSession, user_id: str, now: datetime | None = None) -> UserProgress:
    """Start over: XP and the current streak go back to zero.

    The XP milestone marker is kept, so re-crossing a threshold does not pay
    out its hints twice. Running boosts and the longest streak are kept.
    """
    if now is None:
        now = utcnow()
    progress = await get_or_create_progress(db, user_id, lock=True, now=now)
    progress.xp = 0
    progress.current_streak = 0
    progress.current_streak_start = None
    progress.last_activity_date = None
    progress.last_streak_milestone = 0
    progress.daily_goal_progress = 0
    progress.daily_goal_date = None
    progress.updated_at = now
    await db.commit()
    logger.info("Progress reset for %s", user_id)
    return progress
