"""Ranked play sessions: start, record attempts, end.

A session is ``active -> closed`` and closing is terminal. Sessions are seeded
with the user's lifetime ranked score, so a session's running total is
cumulative; only its delta over ``starting_score`` is folded back into the
lifetime totals when it ends. Sessions force-closed by a newer start are never
folded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.cache import ResponseCache
from quizecon.config import get_settings
from quizecon.day_utils import utcnow
from quizecon.db.models import LeaderboardEntry, RankedAttempt, RankedSession, UserProgress
from quizecon.errors import InvalidSession, SessionNotActive
from quizecon.gamification.progress import get_or_create_progress
from quizecon.gamification.scoring import compute_accuracy, compute_average_time, compute_ranked_delta
from quizecon.ranked.leaderboard_service import LEADERBOARD_CACHE_PREFIX, get_user_rank

logger = structlog.get_logger()


@dataclass(frozen=True)
class AttemptResult:
    session: RankedSession
    score_delta: int


@dataclass(frozen=True)
class SessionSummary:
    session: RankedSession
    score_delta: int
    accuracy: float
    average_time_ms: int
    lifetime_score: int
    leaderboard_entry: LeaderboardEntry | None
    rank: int | None


async def _load_session(db: AsyncSession, session_id: str) -> RankedSession | None:
    result = await db.execute(
        select(RankedSession)
        .where(RankedSession.id == session_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_owned_session(db: AsyncSession, session_id: str, user_id: str) -> RankedSession:
    """The session if it exists and belongs to ``user_id``; InvalidSession otherwise."""
    session = await _load_session(db, session_id)
    if session is None or session.user_id != user_id:
        raise InvalidSession("Ranked session not found")
    return session


async def get_active_session(db: AsyncSession, user_id: str) -> RankedSession | None:
    result = await db.execute(
        select(RankedSession)
        .where(RankedSession.user_id == user_id, RankedSession.is_active.is_(True))
        .order_by(RankedSession.started_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def start_session(db: AsyncSession, user_id: str, now: datetime | None = None) -> RankedSession:
    """Close any active session of the user and open a new one, in one transaction."""
    if now is None:
        now = utcnow()

    # The progress row lock serializes concurrent starts/ends for this user.
    progress = await get_or_create_progress(db, user_id, lock=True, now=now)

    closed = await db.execute(
        update(RankedSession)
        .where(RankedSession.user_id == user_id, RankedSession.is_active.is_(True))
        .values(is_active=False, ended_at=now)
        .execution_options(synchronize_session=False)
    )

    session = RankedSession(
        user_id=user_id,
        is_active=True,
        started_at=now,
        starting_score=progress.ranked_score,
        total_score=progress.ranked_score,
        questions_answered=0,
        correct_answers=0,
        total_time_ms=0,
    )
    db.add(session)
    await db.commit()

    if closed.rowcount:
        logger.info("ranked_sessions_force_closed", user_id=user_id, count=closed.rowcount)
    logger.info("ranked_session_started", user_id=user_id, session_id=session.id, seed=session.starting_score)
    return session


async def record_attempt(
    db: AsyncSession,
    session_id: str,
    user_id: str,
    difficulty: int,
    elapsed_ms: int,
    hints_used: int,
    correct: bool,
    now: datetime | None = None,
) -> AttemptResult:
    """Apply one answer to an active session's running totals. Never touches the leaderboard."""
    delta = compute_ranked_delta(difficulty, elapsed_ms, hints_used, correct)
    if now is None:
        now = utcnow()

    session = await get_owned_session(db, session_id, user_id)
    if not session.is_active:
        raise SessionNotActive("Ranked session is already closed")

    result = await db.execute(
        update(RankedSession)
        .where(
            RankedSession.id == session_id,
            RankedSession.user_id == user_id,
            RankedSession.is_active.is_(True),
        )
        .values(
            total_score=RankedSession.total_score + delta,
            questions_answered=RankedSession.questions_answered + 1,
            correct_answers=RankedSession.correct_answers + (1 if correct else 0),
            total_time_ms=RankedSession.total_time_ms + elapsed_ms,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise SessionNotActive("Ranked session is already closed")

    db.add(
        RankedAttempt(
            session_id=session_id,
            difficulty=difficulty,
            elapsed_ms=elapsed_ms,
            hints_used=hints_used,
            is_correct=correct,
            score_delta=delta,
            created_at=now,
        )
    )
    await db.commit()
    return AttemptResult(session=await _load_session(db, session_id), score_delta=delta)


async def _upsert_leaderboard_entry(
    db: AsyncSession,
    progress: UserProgress,
    session: RankedSession,
    now: datetime,
) -> LeaderboardEntry:
    entry = await db.get(LeaderboardEntry, progress.user_id, populate_existing=True)
    accuracy = compute_accuracy(progress.ranked_correct_total, progress.ranked_questions_total)
    average_time = compute_average_time(progress.ranked_time_ms_total, progress.ranked_questions_total)
    if entry is None:
        entry = LeaderboardEntry(user_id=progress.user_id, total_score=progress.ranked_score, achieved_at=now)
        db.add(entry)
    elif entry.total_score != progress.ranked_score:
        entry.total_score = progress.ranked_score
        entry.achieved_at = now
    entry.session_id = session.id
    entry.questions_answered = progress.ranked_questions_total
    entry.correct_answers = progress.ranked_correct_total
    entry.accuracy = accuracy
    entry.average_time_ms = average_time
    return entry


async def end_session(
    db: AsyncSession,
    session_id: str,
    user_id: str,
    now: datetime | None = None,
    cache: ResponseCache | None = None,
) -> SessionSummary:
    """Close the session, fold its delta into lifetime totals and update the leaderboard."""
    if now is None:
        now = utcnow()

    session = await get_owned_session(db, session_id, user_id)
    if not session.is_active:
        raise SessionNotActive("Ranked session is already closed")

    await get_or_create_progress(db, user_id, lock=True, now=now)
    closed = await db.execute(
        update(RankedSession)
        .where(RankedSession.id == session_id, RankedSession.is_active.is_(True))
        .values(is_active=False, ended_at=now)
        .execution_options(synchronize_session=False)
    )
    if closed.rowcount != 1:
        await db.rollback()
        raise SessionNotActive("Ranked session is already closed")

    session = await _load_session(db, session_id)
    score_delta = session.total_score - session.starting_score

    await db.execute(
        update(UserProgress)
        .where(UserProgress.user_id == user_id)
        .values(
            ranked_score=UserProgress.ranked_score + score_delta,
            ranked_questions_total=UserProgress.ranked_questions_total + session.questions_answered,
            ranked_correct_total=UserProgress.ranked_correct_total + session.correct_answers,
            ranked_time_ms_total=UserProgress.ranked_time_ms_total + session.total_time_ms,
            ranked_sessions_played=UserProgress.ranked_sessions_played + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    progress = await get_or_create_progress(db, user_id, now=now)

    entry = None
    if progress.ranked_questions_total >= get_settings().ranked_min_questions:
        entry = await _upsert_leaderboard_entry(db, progress, session, now)
    await db.commit()

    if cache is not None and entry is not None:
        await cache.invalidate(cache.key(LEADERBOARD_CACHE_PREFIX))

    rank = await get_user_rank(db, user_id) if entry is not None else None
    logger.info(
        "ranked_session_ended",
        user_id=user_id,
        session_id=session_id,
        score_delta=score_delta,
        lifetime_score=progress.ranked_score,
        rank=rank,
    )
    return SessionSummary(
        session=session,
        score_delta=score_delta,
        accuracy=compute_accuracy(session.correct_answers, session.questions_answered),
        average_time_ms=compute_average_time(session.total_time_ms, session.questions_answered),
        lifetime_score=progress.ranked_score,
        leaderboard_entry=entry,
        rank=rank,
    )
