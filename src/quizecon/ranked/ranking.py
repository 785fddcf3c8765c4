"""Deterministic leaderboard ordering. ZERO randomness.

Entries rank by total_score DESC, then achieved_at ASC (earlier achievement
wins a tie), then user_id ASC so the order is total. Serving the board and
computing one user's rank both derive from the definitions below.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import and_, or_
from sqlalchemy.sql.elements import ColumnElement

from quizecon.db.models import LeaderboardEntry


def order_by_clauses() -> tuple[Any, ...]:
    """ORDER BY for serving the leaderboard."""
    return (
        LeaderboardEntry.total_score.desc(),
        LeaderboardEntry.achieved_at.asc(),
        LeaderboardEntry.user_id.asc(),
    )


def ranks_ahead_of(total_score: int, achieved_at: datetime, user_id: str) -> ColumnElement[bool]:
    """WHERE clause matching every entry that sorts strictly before the given one."""
    col = LeaderboardEntry
    return or_(
        col.total_score > total_score,
        and_(col.total_score == total_score, col.achieved_at < achieved_at),
        and_(col.total_score == total_score, col.achieved_at == achieved_at, col.user_id < user_id),
    )

