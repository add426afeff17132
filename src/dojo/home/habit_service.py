"""Home Dojo habit check-ins, daily XP cap and streaks."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.config import get_settings
from dojo.day_utils import count_streak, utc_now, utc_today
from dojo.db.models import CustomHabit, HabitLog, Student
from dojo.errors import NotFound, RateLimited, ValidationError
from dojo.gamification.guard import LIMIT_MESSAGES, WindowPolicy, check_and_reserve
from dojo.gamification.xp_service import award_xp, get_balance, resolve_student
from dojo.home.catalog import HABIT_PRESETS
from dojo.ids import is_uuid

logger = structlog.get_logger()

CUSTOM_TITLE_MAX = 100
DEFAULT_CUSTOM_ICON = "✨"


@dataclass
class HabitCheckResult:
    habit_name: str
    xp_awarded: int
    new_total_xp: int
    daily_xp_earned: int
    daily_xp_cap: int
    at_daily_limit: bool
    message: str


@dataclass
class HabitStatus:
    completed_habits: list[str] = field(default_factory=list)
    daily_xp_earned: int = 0
    daily_xp_cap: int = 0
    total_xp: int = 0
    streak: int = 0


async def _is_known_habit(db: AsyncSession, student_id: uuid.UUID, habit_name: str) -> bool:
    if habit_name in HABIT_PRESETS:
        return True
    if not is_uuid(habit_name):
        return False
    result = await db.execute(
        select(CustomHabit.id).where(
            CustomHabit.id == uuid.UUID(habit_name),
            CustomHabit.student_id == student_id,
            CustomHabit.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none() is not None


async def check_in_habit(db: AsyncSession, student_id: uuid.UUID, habit_name: str) -> HabitCheckResult:
    """Log a habit for today and award XP while under the daily cap.

    The log row is written even when the cap leaves nothing to award, so the
    habit still shows as done and still counts toward the streak.
    """
    habit_name = (habit_name or "").strip()
    if not habit_name:
        raise ValidationError("habit_name is required")

    settings = get_settings()
    student = await resolve_student(db, student_id)
    if not await _is_known_habit(db, student.id, habit_name):
        raise ValidationError(f"Unknown habit '{habit_name}'")
    day = utc_today()

    once = await check_and_reserve(db, student.id, habit_name, WindowPolicy.HABIT_ONCE, day=day)
    if not once.allowed:
        balance = await get_balance(db, student.id)
        await db.rollback()
        raise RateLimited("You already completed this habit today!", balance=balance)

    cap = await check_and_reserve(db, student.id, habit_name, WindowPolicy.HABIT_XP_CAP, day=day)
    xp = min(settings.habit_xp, cap.remaining) if cap.allowed else 0

    try:
        async with db.begin_nested():
            db.add(HabitLog(student_id=student.id, habit_name=habit_name, xp_awarded=xp, log_date=day))
    except IntegrityError:
        balance = await get_balance(db, student.id)
        await db.rollback()
        raise RateLimited("You already completed this habit today!", balance=balance) from None

    if xp > 0:
        new_total = await award_xp(db, student.id, xp, "home_dojo", {"habit_name": habit_name})
    else:
        new_total = await get_balance(db, student.id)
    await db.commit()

    daily_earned = cap.used + xp
    at_limit = daily_earned >= cap.limit
    if xp > 0:
        message = f"Habit complete! +{xp} XP"
    else:
        message = f"Habit complete! {LIMIT_MESSAGES[WindowPolicy.HABIT_XP_CAP]} ({cap.limit} XP)"

    logger.info(
        "habit_checked_in",
        student_id=str(student.id),
        habit_name=habit_name,
        xp=xp,
        daily_xp=daily_earned,
    )
    return HabitCheckResult(
        habit_name=habit_name,
        xp_awarded=xp,
        new_total_xp=new_total,
        daily_xp_earned=daily_earned,
        daily_xp_cap=cap.limit,
        at_daily_limit=at_limit,
        message=message,
    )


async def get_habit_streak(db: AsyncSession, student_id: uuid.UUID) -> int:
    """Consecutive days with at least one habit, ending today or yesterday."""
    result = await db.execute(
        select(HabitLog.log_date).where(HabitLog.student_id == student_id).distinct()
    )
    return count_streak(set(result.scalars().all()), utc_today())


async def get_habit_status(db: AsyncSession, student_id: uuid.UUID) -> HabitStatus:
    """Today's habits for a student. Unknown students get an empty status."""
    settings = get_settings()
    day = utc_today()
    result = await db.execute(
        select(HabitLog.habit_name, HabitLog.xp_awarded)
        .where(HabitLog.student_id == student_id, HabitLog.log_date == day)
        .order_by(HabitLog.id)
    )
    rows = result.all()

    balance_result = await db.execute(select(Student.total_xp).where(Student.id == student_id))
    total_xp = balance_result.scalar_one_or_none() or 0

    return HabitStatus(
        completed_habits=[r[0] for r in rows],
        daily_xp_earned=sum(r[1] for r in rows),
        daily_xp_cap=settings.daily_habit_xp_cap,
        total_xp=total_xp,
        streak=await get_habit_streak(db, student_id),
    )


# --- Custom habits ---


async def list_custom_habits(db: AsyncSession, student_id: uuid.UUID) -> list[CustomHabit]:
    result = await db.execute(
        select(CustomHabit)
        .where(CustomHabit.student_id == student_id, CustomHabit.is_active.is_(True))
        .order_by(CustomHabit.created_at.asc())
    )
    return list(result.scalars().all())


async def create_custom_habit(
    db: AsyncSession,
    student_id: uuid.UUID,
    title: str,
    icon: str | None = None,
) -> CustomHabit:
    """Create a student-defined habit. Titles are cut to 100 characters."""
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required")
    student = await resolve_student(db, student_id)

    habit = CustomHabit(
        student_id=student.id,
        title=title[:CUSTOM_TITLE_MAX],
        icon=(icon or DEFAULT_CUSTOM_ICON)[:10],
        is_active=True,
        created_at=utc_now(),
    )
    db.add(habit)
    await db.commit()
    logger.info("custom_habit_created", student_id=str(student_id), habit_id=str(habit.id))
    return habit


async def deactivate_custom_habit(db: AsyncSession, student_id: uuid.UUID, habit_id: uuid.UUID) -> None:
    """Soft-delete a custom habit owned by the student."""
    habit = await db.get(CustomHabit, habit_id)
    if habit is None or habit.student_id != student_id or not habit.is_active:
        raise NotFound("Custom habit not found")
    habit.is_active = False
    await db.commit()
    logger.info("custom_habit_deactivated", student_id=str(student_id), habit_id=str(habit_id))

