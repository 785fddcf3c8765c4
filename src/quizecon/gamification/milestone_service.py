"""Streak and XP milestone ladders: selection, one-time grants and XP boosts.

Grant decisions only ever consult the per-ladder markers on UserProgress
(``last_streak_milestone`` / ``last_xp_milestone``). The achievement table is
history for display and is never scanned to decide a grant.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.day_utils import ensure_utc, utcnow
from quizecon.db.models import MilestoneAchievement, StreakMilestone, UserProgress, XpMilestone
from quizecon.gamification.progress import get_or_create_progress
from quizecon.wallet.ledger import credit

logger = logging.getLogger(__name__)

MILESTONE_STREAK = "streak"
MILESTONE_XP = "xp"


@dataclass(frozen=True)
class XpBoost:
    active: bool
    multiplier: float
    expiry: datetime | None


@dataclass(frozen=True)
class MilestoneGrant:
    milestone_type: str
    threshold: int
    reward_description: str
    xp_boost_multiplier: float
    boost_expiry: datetime | None
    free_hints_reward: int = 0
    boost_applied: bool = False


@dataclass(frozen=True)
class NextMilestone:
    threshold: int
    remaining: int
    reward_description: str


@dataclass(frozen=True)
class XpMilestoneResult:
    granted: list[MilestoneGrant]
    next_milestone: NextMilestone | None


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def select_streak_milestone(
    milestones: Sequence[StreakMilestone],
    streak: int,
    last_granted: int,
) -> StreakMilestone | None:
    """Highest active milestone with ``last_granted < threshold <= streak``, if any."""
    best: StreakMilestone | None = None
    for milestone in milestones:
        if not milestone.is_active:
            continue
        if last_granted < milestone.threshold <= streak and (best is None or milestone.threshold > best.threshold):
            best = milestone
    return best


def select_crossed_xp_milestones(
    milestones: Sequence[XpMilestone],
    xp: int,
    last_granted: int,
) -> list[XpMilestone]:
    """Every active XP milestone crossed since the marker, ascending."""
    crossed = [m for m in milestones if m.is_active and last_granted < m.threshold <= xp]
    return sorted(crossed, key=lambda m: m.threshold)


def next_milestone(milestones: Sequence[StreakMilestone | XpMilestone], value: int) -> NextMilestone | None:
    upcoming = sorted((m for m in milestones if m.is_active and m.threshold > value), key=lambda m: m.threshold)
    if not upcoming:
        return None
    target = upcoming[0]
    return NextMilestone(
        threshold=target.threshold,
        remaining=target.threshold - value,
        reward_description=target.reward_description,
    )


def boost_state(progress: UserProgress, now: datetime) -> XpBoost:
    """Boost is active iff its expiry is in the future. Inactive boosts report 1.0."""
    expiry = ensure_utc(progress.xp_boost_expiry)
    if expiry is not None and expiry > now and progress.xp_boost_multiplier > 1.0:
        return XpBoost(active=True, multiplier=float(progress.xp_boost_multiplier), expiry=expiry)
    return XpBoost(active=False, multiplier=1.0, expiry=expiry)


def activate_boost(progress: UserProgress, multiplier: float, duration_hours: int, now: datetime) -> bool:
    """Install a boost unless a stronger one is still running. Returns True if installed."""
    if multiplier <= 1.0 or duration_hours <= 0:
        return False
    current = boost_state(progress, now)
    if current.active and multiplier < current.multiplier:
        return False
    progress.xp_boost_multiplier = multiplier
    progress.xp_boost_expiry = now + timedelta(hours=duration_hours)
    return True


# ---------------------------------------------------------------------------
# Ladder loading
# ---------------------------------------------------------------------------


async def load_streak_milestones(db: AsyncSession) -> list[StreakMilestone]:
    result = await db.execute(
        select(StreakMilestone).where(StreakMilestone.is_active.is_(True)).order_by(StreakMilestone.threshold)
    )
    return list(result.scalars().all())


async def load_xp_milestones(db: AsyncSession) -> list[XpMilestone]:
    result = await db.execute(
        select(XpMilestone).where(XpMilestone.is_active.is_(True)).order_by(XpMilestone.threshold)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Grants (no commit; callers own the transaction)
# ---------------------------------------------------------------------------


async def check_streak_milestone(
    db: AsyncSession,
    progress: UserProgress,
    now: datetime,
) -> MilestoneGrant | None:
    """Grant at most one streak milestone for the current streak run."""
    milestones = await load_streak_milestones(db)
    milestone = select_streak_milestone(milestones, progress.current_streak, progress.last_streak_milestone)
    if milestone is None:
        return None

    progress.last_streak_milestone = milestone.threshold
    applied = activate_boost(progress, milestone.xp_boost_multiplier, milestone.boost_duration_hours, now)
    expiry = progress.xp_boost_expiry if applied else None
    db.add(
        MilestoneAchievement(
            user_id=progress.user_id,
            milestone_type=MILESTONE_STREAK,
            threshold=milestone.threshold,
            reward_description=milestone.reward_description,
            xp_boost_multiplier=milestone.xp_boost_multiplier,
            boost_expiry=expiry,
            achieved_at=now,
        )
    )
    logger.info(
        "Streak milestone %d granted to %s (boost x%.2f, applied=%s)",
        milestone.threshold, progress.user_id, milestone.xp_boost_multiplier, applied,
    )
    return MilestoneGrant(
        milestone_type=MILESTONE_STREAK,
        threshold=milestone.threshold,
        reward_description=milestone.reward_description,
        xp_boost_multiplier=milestone.xp_boost_multiplier,
        boost_expiry=expiry,
        boost_applied=applied,
    )


async def check_xp_milestones(
    db: AsyncSession,
    progress: UserProgress,
    now: datetime,
) -> XpMilestoneResult:
    """Grant every XP milestone crossed since the marker, each exactly once.

    Hint rewards are credited to the wallet inside the caller's transaction.
    """
    milestones = await load_xp_milestones(db)
    grants: list[MilestoneGrant] = []
    for milestone in select_crossed_xp_milestones(milestones, progress.xp, progress.last_xp_milestone):
        progress.last_xp_milestone = milestone.threshold
        if milestone.free_hints_reward > 0:
            await credit(db, progress.user_id, milestone.free_hints_reward, now)
        applied = activate_boost(progress, milestone.xp_boost_multiplier, milestone.boost_duration_hours, now)
        expiry = progress.xp_boost_expiry if applied else None
        db.add(
            MilestoneAchievement(
                user_id=progress.user_id,
                milestone_type=MILESTONE_XP,
                threshold=milestone.threshold,
                reward_description=milestone.reward_description,
                xp_boost_multiplier=milestone.xp_boost_multiplier,
                boost_expiry=expiry,
                free_hints_reward=milestone.free_hints_reward,
                achieved_at=now,
            )
        )
        grants.append(
            MilestoneGrant(
                milestone_type=MILESTONE_XP,
                threshold=milestone.threshold,
                reward_description=milestone.reward_description,
                xp_boost_multiplier=milestone.xp_boost_multiplier,
                boost_expiry=expiry,
                free_hints_reward=milestone.free_hints_reward,
                boost_applied=applied,
            )
        )
        logger.info("XP milestone %d granted to %s", milestone.threshold, progress.user_id)

    return XpMilestoneResult(granted=grants, next_milestone=next_milestone(milestones, progress.xp))


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_active_xp_boost(db: AsyncSession, user_id: str, now: datetime | None = None) -> XpBoost:
    if now is None:
        now = utcnow()
    progress = await get_or_create_progress(db, user_id, now=now)
    await db.commit()
    return boost_state(progress, now)


async def get_next_streak_milestone(db: AsyncSession, streak: int) -> NextMilestone | None:
    return next_milestone(await load_streak_milestones(db), streak)


async def get_next_xp_milestone(db: AsyncSession, xp: int) -> NextMilestone | None:
    return next_milestone(await load_xp_milestones(db), xp)


async def list_achievements(db: AsyncSession, user_id: str, limit: int = 20) -> list[MilestoneAchievement]:
    result = await db.execute(
        select(MilestoneAchievement)
        .where(MilestoneAchievement.user_id == user_id)
        .order_by(MilestoneAchievement.achieved_at.desc(), MilestoneAchievement.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
