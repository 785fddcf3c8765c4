"""XP, streak and milestone API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.auth.dependencies import get_current_user_id
from quizecon.database import get_session
from quizecon.gamification.milestone_service import (
    MilestoneGrant,
    NextMilestone,
    XpBoost,
    get_active_xp_boost,
)
from quizecon.gamification.schemas import (
    AchievementResponse,
    AnswerRequest,
    AnswerResponse,
    MilestoneGrantResponse,
    NextMilestoneResponse,
    ProgressResponse,
    StreakResponse,
    XpBoostResponse,
)
from quizecon.gamification.streak_service import check_streak
from quizecon.gamification.xp_service import get_progress_summary, record_answer, reset_progress

router = APIRouter(prefix="/api/v1", tags=["Progress"])


def _boost(boost: XpBoost) -> XpBoostResponse:
    return XpBoostResponse(active=boost.active, multiplier=boost.multiplier, expiry=boost.expiry)


def _grant(grant: MilestoneGrant | None) -> MilestoneGrantResponse | None:
    if grant is None:
        return None
    return MilestoneGrantResponse(
        milestone_type=grant.milestone_type,
        threshold=grant.threshold,
        reward_description=grant.reward_description,
        xp_boost_multiplier=grant.xp_boost_multiplier,
        boost_expiry=grant.boost_expiry,
        free_hints_reward=grant.free_hints_reward,
        boost_applied=grant.boost_applied,
    )


def _next(milestone: NextMilestone | None) -> NextMilestoneResponse | None:
    if milestone is None:
        return None
    return NextMilestoneResponse(
        threshold=milestone.threshold,
        remaining=milestone.remaining,
        reward_description=milestone.reward_description,
    )


@router.post("/attempts", response_model=AnswerResponse)
async def submit_answer(
    body: AnswerRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Record a learning-mode answer and award XP for it."""
    result = await record_answer(
        db, user_id, body.difficulty, body.hints_used, body.elapsed_ms, body.correct,
    )
    return AnswerResponse(
        correct=result.correct,
        base_xp=result.base_xp,
        xp_awarded=result.xp_awarded,
        total_xp=result.total_xp,
        boost=_boost(result.boost),
        current_streak=result.current_streak,
        streak_changed=result.streak_changed,
        daily_goal_progress=result.daily_goal_progress,
        daily_goal_target=result.daily_goal_target,
        streak_milestone=_grant(result.streak_milestone),
        xp_milestones=[_grant(g) for g in result.xp_milestones],
        next_xp_milestone=_next(result.next_xp_milestone),
    )


@router.post("/streak/check", response_model=StreakResponse)
async def check_my_streak(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    result = await check_streak(db, user_id)
    return StreakResponse(
        current_streak=result.current_streak,
        longest_streak=result.longest_streak,
        changed=result.changed,
        reset=result.reset,
        milestone=_grant(result.milestone),
        boost=_boost(result.boost),
    )


@router.get("/progress", response_model=ProgressResponse)
async def get_my_progress(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """XP, streak, daily goal, active boost and the next milestones."""
    summary = await get_progress_summary(db, user_id)
    return ProgressResponse(
        xp=summary.xp,
        current_streak=summary.current_streak,
        longest_streak=summary.longest_streak,
        daily_goal_progress=summary.daily_goal_progress,
        daily_goal_target=summary.daily_goal_target,
        boost=_boost(summary.boost),
        next_streak_milestone=_next(summary.next_streak_milestone),
        next_xp_milestone=_next(summary.next_xp_milestone),
        recent_achievements=[
            AchievementResponse(
                milestone_type=a.milestone_type,
                threshold=a.threshold,
                reward_description=a.reward_description,
                xp_boost_multiplier=a.xp_boost_multiplier,
                free_hints_reward=a.free_hints_reward,
                achieved_at=a.achieved_at,
            )
            for a in summary.recent_achievements
        ],
    )


@router.post("/progress/reset", response_model=ProgressResponse)
async def reset_my_progress(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    await reset_progress(db, user_id)
    return await get_my_progress(user_id=user_id, db=db)


@router.get("/xp-boost", response_model=XpBoostResponse)
async def get_my_xp_boost(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return _boost(await get_active_xp_boost(db, user_id))
