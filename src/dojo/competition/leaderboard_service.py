"""Club leaderboard: all-time XP ranking with this month's earnings."""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.competition.ranking import rank_students
from dojo.day_utils import get_month_start
from dojo.db.models import Club, Student
from dojo.errors import NotFound
from dojo.gamification.xp_service import sum_earned_since

logger = logging.getLogger(__name__)


async def get_leaderboard(db: AsyncSession, club_id: uuid.UUID) -> list[dict[str, Any]]:
    """Ranked students of a club.

    ``total_xp`` is the denormalized balance; ``monthly_xp`` sums EARN
    entries since 00:00 UTC on the first of the current month.
    """
    if await db.get(Club, club_id) is None:
        raise NotFound("Club not found")

    result = await db.execute(
        select(Student)
        .where(Student.club_id == club_id)
        .order_by(Student.created_at.asc(), Student.id.asc())
    )
    students = result.scalars().all()

    monthly = await sum_earned_since(db, [s.id for s in students], get_month_start())
    entries = [
        {
            "student_id": s.id,
            "name": s.name,
            "belt": s.belt,
            "stripes": s.stripes,
            "total_xp": s.total_xp,
            "monthly_xp": monthly.get(s.id, 0),
        }
        for s in students
    ]
    ranked = rank_students(entries)
    logger.debug("Built leaderboard for club %s with %d students", club_id, len(ranked))
    return ranked
