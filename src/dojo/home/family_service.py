"""Family challenges: parent-vs-kid activities, once per challenge per day."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.config import get_settings
from dojo.day_utils import utc_today
from dojo.db.models import FamilyLog
from dojo.errors import RateLimited
from dojo.gamification.guard import WindowPolicy, check_and_reserve
from dojo.gamification.xp_service import award_xp, get_balance, resolve_student
from dojo.home.catalog import get_family_challenge

logger = structlog.get_logger()

ALREADY_DONE = "You already completed this family challenge today!"


@dataclass
class FamilyResult:
    challenge_id: str
    xp_awarded: int
    new_total_xp: int
    won: bool
    message: str


@dataclass
class FamilyStatus:
    completed: list[dict] = field(default_factory=list)
    total_xp_today: int = 0


def family_xp(base_xp: int, won: bool) -> int:
    """Full reward for a win, ``family_loss_ratio`` of it for a loss."""
    if won:
        return base_xp
    # half rounds up: 85 -> 43
    return math.floor(base_xp * get_settings().family_loss_ratio + 0.5)


async def submit_family_challenge(
    db: AsyncSession,
    student_id: uuid.UUID,
    challenge_id: str,
    won: bool,
) -> FamilyResult:
    challenge = get_family_challenge(challenge_id)
    student = await resolve_student(db, student_id)
    day = utc_today()

    decision = await check_and_reserve(db, student.id, challenge.key, WindowPolicy.FAMILY_ONCE, day=day)
    if not decision.allowed:
        balance = await get_balance(db, student.id)
        await db.rollback()
        raise RateLimited(ALREADY_DONE, balance=balance)

    xp = family_xp(challenge.base_xp, won)
    try:
        async with db.begin_nested():
            db.add(FamilyLog(student_id=student.id, challenge_id=challenge.key, won=won, xp_awarded=xp, log_date=day))
    except IntegrityError:
        balance = await get_balance(db, student.id)
        await db.rollback()
        raise RateLimited(ALREADY_DONE, balance=balance) from None

    new_total = await award_xp(db, student.id, xp, "family", {"challenge_id": challenge.key, "won": won})
    await db.commit()

    logger.info("family_challenge_completed", student_id=str(student_id), challenge_id=challenge.key, won=won, xp=xp)
    return FamilyResult(
        challenge_id=challenge.key,
        xp_awarded=xp,
        new_total_xp=new_total,
        won=won,
        message=f"Family challenge completed! +{xp} XP earned.",
    )


async def get_family_status(db: AsyncSession, student_id: uuid.UUID) -> FamilyStatus:
    """Family challenges completed today."""
    result = await db.execute(
        select(FamilyLog)
        .where(FamilyLog.student_id == student_id, FamilyLog.log_date == utc_today())
        .order_by(FamilyLog.id)
    )
    logs = result.scalars().all()
    return FamilyStatus(
        completed=[{"challenge_id": log.challenge_id, "xp_awarded": log.xp_awarded, "won": log.won} for log in logs],
        total_xp_today=sum(log.xp_awarded for log in logs),
    )
