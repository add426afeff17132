"""XP ledger: atomic awards and spends against a student's balance.

``students.total_xp`` is changed only through a single conditional UPDATE
per operation, so concurrent awards never lose an increment and a spend
can never take the balance below zero. Every change appends one row to
``xp_transactions`` inside the same transaction.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.day_utils import utc_now
from dojo.db.models import Club, Student, XPTransaction
from dojo.errors import InsufficientXP, NotFound, ValidationError

logger = structlog.get_logger()

EARN = "EARN"
SPEND = "SPEND"


def _check_amount(amount: int) -> None:
    # bool is an int subclass; True must not pass as 1 XP
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Amount must be a positive integer")


async def get_student(db: AsyncSession, student_id: uuid.UUID) -> Student:
    """Load a student or raise NotFound."""
    student = await db.get(Student, student_id)
    if student is None:
        raise NotFound("Student not found")
    return student


async def resolve_student(
    db: AsyncSession,
    student_id: uuid.UUID,
    auto_provision: bool = True,
) -> Student:
    """Load a student, provisioning a record on first contact.

    New students join the oldest club. Two concurrent first contacts race
    on the primary key; the loser re-reads the winner's row.
    """
    student = await db.get(Student, student_id)
    if student is not None:
        return student
    if not auto_provision:
        raise NotFound("Student not found")

    club_result = await db.execute(select(Club).order_by(Club.created_at.asc()).limit(1))
    club = club_result.scalar_one_or_none()
    if club is None:
        raise ValidationError("No clubs available")

    try:
        async with db.begin_nested():
            student = Student(id=student_id, club_id=club.id, name="New Student", created_at=utc_now())
            db.add(student)
    except IntegrityError:
        student = await db.get(Student, student_id, populate_existing=True)
        if student is None:
            raise
        return student

    logger.info("student_provisioned", student_id=str(student_id), club_id=str(club.id))
    return student


async def award_xp(
    db: AsyncSession,
    student_id: uuid.UUID,
    amount: int,
    source: str,
    metadata: dict[str, Any] | None = None,
) -> int:
    """Credit ``amount`` XP and record an EARN entry. Returns the new balance.

    Does not commit; the caller owns the transaction.
    """
    _check_amount(amount)
    now = utc_now()
    result = await db.execute(
        update(Student)
        .where(Student.id == student_id)
        .values(total_xp=Student.total_xp + amount, updated_at=now)
        .returning(Student.total_xp)
        .execution_options(synchronize_session=False)
    )
    new_total = result.scalar_one_or_none()
    if new_total is None:
        raise NotFound("Student not found")

    db.add(XPTransaction(
        student_id=student_id,
        amount=amount,
        type=EARN,
        reason=source,
        details=metadata or {},
        created_at=now,
    ))
    await db.flush()

    logger.info("xp_awarded", student_id=str(student_id), amount=amount, source=source, new_total=new_total)
    return new_total


async def spend_xp(
    db: AsyncSession,
    student_id: uuid.UUID,
    amount: int,
    reason: str,
    metadata: dict[str, Any] | None = None,
) -> int:
    """Debit ``amount`` XP and record a SPEND entry. Returns the new balance.

    Raises InsufficientXP (carrying the current balance) when the balance
    is smaller than ``amount``; nothing is written in that case.
    """
    _check_amount(amount)
    now = utc_now()
    result = await db.execute(
        update(Student)
        .where(Student.id == student_id, Student.total_xp >= amount)
        .values(total_xp=Student.total_xp - amount, updated_at=now)
        .returning(Student.total_xp)
        .execution_options(synchronize_session=False)
    )
    new_total = result.scalar_one_or_none()
    if new_total is None:
        balance = await get_balance(db, student_id)
        raise InsufficientXP(f"Insufficient XP: have {balance}, need {amount}", balance=balance)

    db.add(XPTransaction(
        student_id=student_id,
        amount=amount,
        type=SPEND,
        reason=reason,
        details=metadata or {},
        created_at=now,
    ))
    await db.flush()

    logger.info("xp_spent", student_id=str(student_id), amount=amount, reason=reason, new_total=new_total)
    return new_total


async def get_balance(db: AsyncSession, student_id: uuid.UUID) -> int:
    """Current balance, read straight from the row (never the identity map)."""
    result = await db.execute(select(Student.total_xp).where(Student.id == student_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        raise NotFound("Student not found")
    return balance


async def get_xp_history(
    db: AsyncSession,
    student_id: uuid.UUID,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[XPTransaction], int]:
    """Ledger entries newest first, plus the total entry count."""
    total_result = await db.execute(
        select(func.count()).select_from(XPTransaction).where(XPTransaction.student_id == student_id)
    )
    total = total_result.scalar_one()

    offset = (page - 1) * per_page
    result = await db.execute(
        select(XPTransaction)
        .where(XPTransaction.student_id == student_id)
        .order_by(XPTransaction.created_at.desc(), XPTransaction.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def sum_earned_since(db: AsyncSession, student_ids: list[uuid.UUID], since) -> dict[uuid.UUID, int]:
    """EARN totals per student since ``since``. Students with none are absent."""
    if not student_ids:
        return {}
    result = await db.execute(
        select(XPTransaction.student_id, func.coalesce(func.sum(XPTransaction.amount), 0))
        .where(
            XPTransaction.student_id.in_(student_ids),
            XPTransaction.type == EARN,
            XPTransaction.created_at >= since,
        )
        .group_by(XPTransaction.student_id)
    )
    return {row[0]: int(row[1]) for row in result.all()}
