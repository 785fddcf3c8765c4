"""Leaderboard ordering as the database applies it. Same rows -> same order, always."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from quizecon.db.models import LeaderboardEntry
from quizecon.ranked.ranking import order_by_clauses, ranks_ahead_of

pytestmark = pytest.mark.asyncio


async def _insert(db, now, rows: list[tuple[str, int, int]]) -> None:
    for user_id, score, minutes in rows:
        db.add(LeaderboardEntry(user_id=user_id, total_score=score, achieved_at=now + timedelta(minutes=minutes)))
    await db.commit()


async def _ordered_ids(db) -> list[str]:
    result = await db.execute(select(LeaderboardEntry.user_id).order_by(*order_by_clauses()))
    return list(result.scalars())


async def test_highest_score_first(db_session, now):
    await _insert(db_session, now, [("a", 100, 0), ("b", 300, 0), ("c", 200, 0)])
    assert await _ordered_ids(db_session) == ["b", "c", "a"]


async def test_earlier_achievement_wins_tie(db_session, now):
    await _insert(db_session, now, [("late", 500, 30), ("early", 500, 5)])
    assert await _ordered_ids(db_session) == ["early", "late"]


async def test_user_id_breaks_full_tie(db_session, now):
    await _insert(db_session, now, [("zed", 500, 0), ("amy", 500, 0), ("max", 500, 0)])
    assert await _ordered_ids(db_session) == ["amy", "max", "zed"]


async def test_negative_scores_rank_last(db_session, now):
    await _insert(db_session, now, [("neg", -150, 0), ("zero", 0, 9)])
    assert await _ordered_ids(db_session) == ["zero", "neg"]


async def test_order_independent_of_insert_order(db_session, now):
    await _insert(db_session, now, [("d", 10, 1), ("c", 20, 9), ("b", 10, 1), ("a", 10, 3)])
    assert await _ordered_ids(db_session) == ["c", "b", "d", "a"]


async def test_rank_clause_agrees_with_serving_order(db_session, now):
    await _insert(
        db_session, now,
        [("a", 10, 3), ("b", 10, 1), ("c", 20, 9), ("d", 10, 1), ("e", -5, 0), ("f", 20, 9)],
    )
    entries = (await db_session.execute(select(LeaderboardEntry).order_by(*order_by_clauses()))).scalars().all()

    for position, entry in enumerate(entries):
        ahead = await db_session.scalar(
            select(func.count())
            .select_from(LeaderboardEntry)
            .where(ranks_ahead_of(entry.total_score, entry.achieved_at, entry.user_id))
        )
        assert ahead == position
