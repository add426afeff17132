"""XP ledger unit tests: atomic awards, guarded spends, provisioning."""

from __future__ import annotations

import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from dojo.day_utils import utc_now
from dojo.db.models import Club, Student, XPTransaction
from dojo.errors import InsufficientXP, NotFound, ValidationError
from dojo.gamification.xp_service import (
    award_xp,
    get_balance,
    get_xp_history,
    resolve_student,
    spend_xp,
    sum_earned_since,
)


async def _ledger_sum(session_factory, student_id: uuid.UUID) -> int:
    async with session_factory() as s:
        earned = (await s.execute(
            select(func.coalesce(func.sum(XPTransaction.amount), 0)).where(
                XPTransaction.student_id == student_id, XPTransaction.type == "EARN"
            )
        )).scalar_one()
        spent = (await s.execute(
            select(func.coalesce(func.sum(XPTransaction.amount), 0)).where(
                XPTransaction.student_id == student_id, XPTransaction.type == "SPEND"
            )
        )).scalar_one()
    return int(earned) - int(spent)


class TestAwardXP:
    """award_xp credits the balance and appends an EARN entry."""

    @pytest.mark.asyncio
    async def test_award_returns_new_balance(self, db_session, make_student):
        student = await make_student(total_xp=40)
        new_total = await award_xp(db_session, student.id, 25, "coach_bonus")
        await db_session.commit()
        assert new_total == 65
        assert await get_balance(db_session, student.id) == 65

    @pytest.mark.asyncio
    async def test_award_writes_ledger_row(self, db_session, make_student):
        student = await make_student()
        await award_xp(db_session, student.id, 15, "arena_trust", {"challenge_key": "pushups"})
        await db_session.commit()

        rows = (await db_session.execute(
            select(XPTransaction).where(XPTransaction.student_id == student.id)
        )).scalars().all()
        assert len(rows) == 1
        assert rows[0].type == "EARN"
        assert rows[0].amount == 15
        assert rows[0].reason == "arena_trust"
        assert rows[0].details == {"challenge_key": "pushups"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, True, 2.5])
    async def test_rejects_non_positive_or_non_integer(self, db_session, make_student, amount):
        student = await make_student()
        with pytest.raises(ValidationError):
            await award_xp(db_session, student.id, amount, "bogus")

    @pytest.mark.asyncio
    async def test_unknown_student(self, db_session, club):
        with pytest.raises(NotFound):
            await award_xp(db_session, uuid.uuid4(), 10, "coach_bonus")

    @pytest.mark.asyncio
    async def test_concurrent_awards_are_not_lost(self, session_factory, make_student):
        """Ten parallel awards from separate sessions all land."""
        student = await make_student()

        async def _award(amount: int) -> int:
            async with session_factory() as s:
                total = await award_xp(s, student.id, amount, "coach_bonus")
                await s.commit()
                return total

        totals = await asyncio.gather(*[_award(10) for _ in range(10)])

        async with session_factory() as s:
            assert await get_balance(s, student.id) == 100
        assert sorted(totals) == list(range(10, 101, 10))
        assert await _ledger_sum(session_factory, student.id) == 100


class TestSpendXP:
    """spend_xp never takes a balance below zero."""

    @pytest.mark.asyncio
    async def test_spend_debits(self, db_session, make_student, session_factory):
        student = await make_student()
        await award_xp(db_session, student.id, 100, "coach_bonus")
        new_total = await spend_xp(db_session, student.id, 40, "reward_shop")
        await db_session.commit()
        assert new_total == 60
        assert await _ledger_sum(session_factory, student.id) == 60

    @pytest.mark.asyncio
    async def test_spend_entire_balance(self, db_session, make_student):
        student = await make_student()
        await award_xp(db_session, student.id, 30, "coach_bonus")
        assert await spend_xp(db_session, student.id, 30, "reward_shop") == 0

    @pytest.mark.asyncio
    async def test_insufficient_balance_carries_balance(self, db_session, make_student):
        student = await make_student()
        await award_xp(db_session, student.id, 30, "coach_bonus")
        await db_session.commit()

        with pytest.raises(InsufficientXP) as exc_info:
            await spend_xp(db_session, student.id, 50, "reward_shop")
        assert exc_info.value.balance == 30
        assert exc_info.value.status_code == 409

        spends = (await db_session.execute(
            select(func.count()).select_from(XPTransaction).where(XPTransaction.type == "SPEND")
        )).scalar_one()
        assert spends == 0
        assert await get_balance(db_session, student.id) == 30

    @pytest.mark.asyncio
    async def test_spend_rejects_zero(self, db_session, make_student):
        student = await make_student()
        with pytest.raises(ValidationError):
            await spend_xp(db_session, student.id, 0, "reward_shop")

    @pytest.mark.asyncio
    async def test_spend_unknown_student(self, db_session, club):
        with pytest.raises(NotFound):
            await spend_xp(db_session, uuid.uuid4(), 5, "reward_shop")


class TestLedgerInvariant:
    """Balance always equals EARN minus SPEND."""

    @pytest.mark.asyncio
    async def test_mixed_operations(self, db_session, make_student, session_factory):
        student = await make_student()
        for amount in (15, 25, 75):
            await award_xp(db_session, student.id, amount, "arena_trust")
        await spend_xp(db_session, student.id, 40, "reward_shop")
        with pytest.raises(InsufficientXP):
            await spend_xp(db_session, student.id, 1000, "reward_shop")
        await award_xp(db_session, student.id, 10, "home_dojo")
        await db_session.commit()

        balance = await get_balance(db_session, student.id)
        assert balance == 85
        assert await _ledger_sum(session_factory, student.id) == balance


class TestHistory:
    @pytest.mark.asyncio
    async def test_newest_first_and_paginated(self, db_session, make_student):
        student = await make_student()
        for amount in (1, 2, 3, 4, 5):
            await award_xp(db_session, student.id, amount, "coach_bonus")
        await db_session.commit()

        entries, total = await get_xp_history(db_session, student.id, page=1, per_page=2)
        assert total == 5
        assert [e.amount for e in entries] == [5, 4]

        entries, _ = await get_xp_history(db_session, student.id, page=3, per_page=2)
        assert [e.amount for e in entries] == [1]


class TestSumEarnedSince:
    @pytest.mark.asyncio
    async def test_counts_earn_only_since_cutoff(self, db_session, make_student):
        a = await make_student(name="A")
        b = await make_student(name="B")
        await award_xp(db_session, a.id, 50, "coach_bonus")
        await spend_xp(db_session, a.id, 20, "reward_shop")
        db_session.add(XPTransaction(
            student_id=b.id,
            amount=99,
            type="EARN",
            reason="old",
            details={},
            created_at=utc_now() - timedelta(days=400),
        ))
        await db_session.commit()

        since = utc_now() - timedelta(days=1)
        totals = await sum_earned_since(db_session, [a.id, b.id], since)
        assert totals == {a.id: 50}

    @pytest.mark.asyncio
    async def test_empty_input(self, db_session):
        assert await sum_earned_since(db_session, [], utc_now()) == {}


class TestResolveStudent:
    """First contact provisions a student into the oldest club."""

    @pytest.mark.asyncio
    async def test_returns_existing(self, db_session, make_student):
        student = await make_student(name="Mia")
        resolved = await resolve_student(db_session, student.id)
        assert resolved.name == "Mia"

    @pytest.mark.asyncio
    async def test_provisions_into_oldest_club(self, db_session, club):
        newer = Club(name="Second Dojo", created_at=utc_now() + timedelta(days=1))
        db_session.add(newer)
        await db_session.commit()

        sid = uuid.uuid4()
        student = await resolve_student(db_session, sid)
        await db_session.commit()
        assert student.id == sid
        assert student.club_id == club.id
        assert student.name == "New Student"
        assert student.total_xp == 0

    @pytest.mark.asyncio
    async def test_no_auto_provision(self, db_session, club):
        with pytest.raises(NotFound):
            await resolve_student(db_session, uuid.uuid4(), auto_provision=False)

    @pytest.mark.asyncio
    async def test_no_clubs(self, db_session):
        with pytest.raises(ValidationError, match="No clubs available"):
            await resolve_student(db_session, uuid.uuid4())
        count = (await db_session.execute(select(func.count()).select_from(Student))).scalar_one()
        assert count == 0
