"""Access to the per-user progress row shared by XP, streaks, milestones and ranked."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quizecon.database import insert_for
from quizecon.day_utils import utcnow
from quizecon.db.models import UserProgress


async def get_or_create_progress(
    db: AsyncSession,
    user_id: str,
    *,
    lock: bool = False,
    now: datetime | None = None,
) -> UserProgress:
    """Get or create the progress row for a user.

    With ``lock=True`` the row is selected ``FOR UPDATE`` so read-modify-write
    sequences on it (streak transitions, milestone grants) serialize per user.
    """
    stmt = (
        insert_for(db, UserProgress)
        .values(user_id=user_id, updated_at=now or utcnow())
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    await db.execute(stmt)

    query = (
        select(UserProgress)
        .where(UserProgress.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    if lock:
        query = query.with_for_update()
    return (await db.execute(query)).scalar_one()
