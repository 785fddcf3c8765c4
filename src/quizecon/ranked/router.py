"""Ranked mode API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.auth.dependencies import get_current_user_id
from quizecon.cache import ResponseCache
from quizecon.config import get_settings
from quizecon.database import get_session
from quizecon.db.models import RankedSession
from quizecon.dependencies import get_cache
from quizecon.ranked.leaderboard_service import (
    MAX_LEADERBOARD_LIMIT,
    get_leaderboard,
    get_user_rank,
    get_user_ranked_stats,
)
from quizecon.ranked.schemas import (
    ActiveSessionResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    RankedAttemptRequest,
    RankedAttemptResponse,
    RankedSessionResponse,
    RankedStatsResponse,
    SessionEndResponse,
)
from quizecon.ranked.session_service import (
    end_session,
    get_active_session,
    get_owned_session,
    record_attempt,
    start_session,
)

router = APIRouter(prefix="/api/v1/ranked", tags=["Ranked"])


def _session(s: RankedSession) -> RankedSessionResponse:
    return RankedSessionResponse(
        id=s.id,
        is_active=s.is_active,
        started_at=s.started_at,
        ended_at=s.ended_at,
        starting_score=s.starting_score,
        total_score=s.total_score,
        questions_answered=s.questions_answered,
        correct_answers=s.correct_answers,
        total_time_ms=s.total_time_ms,
    )


@router.post("/sessions", response_model=RankedSessionResponse, status_code=201)
async def start_ranked_session(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Start a new session. Any session still active for the user is closed first."""
    return _session(await start_session(db, user_id))


@router.get("/sessions/active", response_model=ActiveSessionResponse)
async def get_my_active_session(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    session = await get_active_session(db, user_id)
    return ActiveSessionResponse(session=_session(session) if session else None)


@router.get("/sessions/{session_id}", response_model=RankedSessionResponse)
async def get_my_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    return _session(await get_owned_session(db, session_id, user_id))


@router.post("/sessions/{session_id}/attempts", response_model=RankedAttemptResponse)
async def submit_ranked_attempt(
    session_id: str,
    body: RankedAttemptRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    result = await record_attempt(
        db, session_id, user_id, body.difficulty, body.elapsed_ms, body.hints_used, body.correct,
    )
    return RankedAttemptResponse(score_delta=result.score_delta, session=_session(result.session))


@router.post("/sessions/{session_id}/end", response_model=SessionEndResponse)
async def end_ranked_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_cache),
):
    summary = await end_session(db, session_id, user_id, cache=cache)
    return SessionEndResponse(
        session=_session(summary.session),
        score_delta=summary.score_delta,
        accuracy=summary.accuracy,
        average_time_ms=summary.average_time_ms,
        lifetime_score=summary.lifetime_score,
        on_leaderboard=summary.leaderboard_entry is not None,
        rank=summary.rank,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_ranked_leaderboard(
    limit: int | None = Query(None, ge=1, le=MAX_LEADERBOARD_LIMIT),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    cache: ResponseCache = Depends(get_cache),
):
    rows = await get_leaderboard(db, limit or get_settings().leaderboard_default_limit, cache=cache)
    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse(**row) for row in rows],
        my_rank=await get_user_rank(db, user_id),
    )


@router.get("/stats", response_model=RankedStatsResponse)
async def get_my_ranked_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    stats = await get_user_ranked_stats(db, user_id)
    return RankedStatsResponse(
        total_score=stats.total_score,
        sessions_played=stats.sessions_played,
        questions_answered=stats.questions_answered,
        correct_answers=stats.correct_answers,
        accuracy=stats.accuracy,
        average_time_ms=stats.average_time_ms,
        average_score_per_session=stats.average_score_per_session,
        rank=stats.rank,
    )
