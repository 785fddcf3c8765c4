"""Ranked leaderboard reads.

Policy: one entry per user holding their cumulative lifetime ranked score as of
the last session that changed it. The board is served from PostgreSQL through
a short-lived response cache; ``end_session`` invalidates it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.cache import ResponseCache
from quizecon.db.models import LeaderboardEntry, UserProgress
from quizecon.gamification.scoring import compute_accuracy, compute_average_time
from quizecon.ranked.ranking import order_by_clauses, ranks_ahead_of

logger = logging.getLogger(__name__)

LEADERBOARD_CACHE_PREFIX = "ranked_leaderboard"
MAX_LEADERBOARD_LIMIT = 100


@dataclass(frozen=True)
class RankedStats:
    total_score: int
    sessions_played: int
    questions_answered: int
    correct_answers: int
    accuracy: float
    average_time_ms: int
    average_score_per_session: int
    rank: int | None


def _row(entry: LeaderboardEntry, rank: int) -> dict[str, Any]:
    return {
        "rank": rank,
        "user_id": entry.user_id,
        "total_score": entry.total_score,
        "questions_answered": entry.questions_answered,
        "correct_answers": entry.correct_answers,
        "accuracy": entry.accuracy,
        "average_time_ms": entry.average_time_ms,
        "achieved_at": entry.achieved_at.isoformat(),
    }


async def get_leaderboard(
    db: AsyncSession,
    limit: int = 50,
    cache: ResponseCache | None = None,
) -> list[dict[str, Any]]:
    """Top ``limit`` entries in leaderboard order, each with its 1-indexed rank."""
    limit = max(1, min(limit, MAX_LEADERBOARD_LIMIT))
    key = cache.key(LEADERBOARD_CACHE_PREFIX, limit) if cache is not None else None
    if cache is not None:
        cached = await cache.get(key)
        if cached is not None:
            return cached

    result = await db.execute(select(LeaderboardEntry).order_by(*order_by_clauses()).limit(limit))
    rows = [_row(entry, idx + 1) for idx, entry in enumerate(result.scalars().all())]

    if cache is not None:
        await cache.set(key, rows)
    return rows


async def get_user_rank(db: AsyncSession, user_id: str) -> int | None:
    """1-indexed rank of the user's entry, or None when they are not on the board."""
    entry = await db.get(LeaderboardEntry, user_id)
    if entry is None:
        return None
    ahead = await db.scalar(
        select(func.count())
        .select_from(LeaderboardEntry)
        .where(ranks_ahead_of(entry.total_score, entry.achieved_at, entry.user_id))
    )
    return int(ahead or 0) + 1


async def get_user_ranked_stats(db: AsyncSession, user_id: str) -> RankedStats:
    progress = await db.get(UserProgress, user_id)
    if progress is None:
        return RankedStats(0, 0, 0, 0, 0.0, 0, 0, None)
    sessions = progress.ranked_sessions_played
    return RankedStats(
        total_score=progress.ranked_score,
        sessions_played=sessions,
        questions_answered=progress.ranked_questions_total,
        correct_answers=progress.ranked_correct_total,
        accuracy=compute_accuracy(progress.ranked_correct_total, progress.ranked_questions_total),
        average_time_ms=compute_average_time(progress.ranked_time_ms_total, progress.ranked_questions_total),
        average_score_per_session=round(progress.ranked_score / sessions) if sessions else 0,
        rank=await get_user_rank(db, user_id),
    )
