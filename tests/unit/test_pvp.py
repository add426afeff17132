"""PvP state machine and settlement tests."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from dojo.arena.pvp_service import (
    ACTIVE,
    COMPLETED,
    PENDING_OPPONENT,
    REJECTED,
    create_pvp_challenge,
    list_pending_pvp,
    respond_to_pvp_challenge,
    settle,
    submit_pvp_score,
    validate_transition,
)
from dojo.arena.submission_service import get_challenge_history, student_channel
from dojo.config import get_settings
from dojo.day_utils import utc_now
from dojo.db.models import Club, XPTransaction
from dojo.errors import InvalidState, NotFound, PermissionDenied, RateLimited, ValidationError


class TestValidateTransition:
    @pytest.mark.parametrize(
        ("current", "target"),
        [(PENDING_OPPONENT, ACTIVE), (PENDING_OPPONENT, REJECTED), (ACTIVE, COMPLETED)],
    )
    def test_valid(self, current, target):
        validate_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (PENDING_OPPONENT, COMPLETED),
            (ACTIVE, REJECTED),
            (COMPLETED, ACTIVE),
            (REJECTED, ACTIVE),
            (COMPLETED, COMPLETED),
        ],
    )
    def test_invalid(self, current, target):
        with pytest.raises(InvalidState):
            validate_transition(current, target)


class TestSettle:
    def test_higher_score_wins(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        winner, xp = settle(a, b, 80, 95)
        assert winner == b
        assert xp == {"challenger": 15, "opponent": 75}

    def test_challenger_wins(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        winner, xp = settle(a, b, 12, 3)
        assert winner == a
        assert xp == {"challenger": 75, "opponent": 15}

    def test_tie_pays_both_consolation(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        winner, xp = settle(a, b, 50, 50)
        assert winner is None
        assert xp == {"challenger": 15, "opponent": 15}


class TestPvPLifecycle:
    async def _active_match(self, session_factory, make_student, club):
        challenger = await make_student(name="Leo")
        opponent = await make_student(name="Ava")
        async with session_factory() as s:
            match = await create_pvp_challenge(s, challenger.id, opponent.id, club.id, "pushup_master")
        async with session_factory() as s:
            await respond_to_pvp_challenge(s, match.id, opponent.id, True)
        return challenger, opponent, match.id

    @pytest.mark.asyncio
    async def test_create_notifies_opponent(self, session_factory, make_student, club, notifier):
        challenger = await make_student(name="Leo")
        opponent = await make_student(name="Ava")
        async with session_factory() as s:
            match = await create_pvp_challenge(
                s, challenger.id, opponent.id, club.id, "pushup_master", notifier=notifier
            )
        assert match.status == PENDING_OPPONENT
        recipient, kind, payload = notifier.sent[0]
        assert recipient == student_channel(opponent.id)
        assert kind == "pvp_challenge"
        assert payload["challenger_name"] == "Leo"

        async with session_factory() as s:
            pending = await list_pending_pvp(s, opponent.id)
        assert [(m.id, name) for m, name in pending] == [(match.id, "Leo")]

    @pytest.mark.asyncio
    async def test_cannot_challenge_self(self, db_session, make_student, club):
        student = await make_student()
        with pytest.raises(ValidationError):
            await create_pvp_challenge(db_session, student.id, student.id, club.id, "pushup_master")

    @pytest.mark.asyncio
    async def test_unknown_opponent(self, db_session, make_student, club):
        student = await make_student()
        with pytest.raises(NotFound):
            await create_pvp_challenge(db_session, student.id, uuid.uuid4(), club.id, "pushup_master")

    @pytest.mark.asyncio
    async def test_opponent_in_other_club(self, session_factory, make_student, club):
        async with session_factory() as s:
            other = Club(name="Rival Dojo", created_at=utc_now())
            s.add(other)
            await s.commit()
        challenger = await make_student()
        opponent = await make_student(in_club=other)
        async with session_factory() as s:
            with pytest.raises(ValidationError):
                await create_pvp_challenge(s, challenger.id, opponent.id, club.id, "pushup_master")

    @pytest.mark.asyncio
    async def test_only_opponent_responds(self, session_factory, make_student, club):
        challenger = await make_student()
        opponent = await make_student()
        async with session_factory() as s:
            match = await create_pvp_challenge(s, challenger.id, opponent.id, club.id, "pushup_master")
        async with session_factory() as s:
            with pytest.raises(PermissionDenied):
                await respond_to_pvp_challenge(s, match.id, challenger.id, True)

    @pytest.mark.asyncio
    async def test_decline_is_terminal(self, session_factory, make_student, club):
        challenger = await make_student()
        opponent = await make_student()
        async with session_factory() as s:
            match = await create_pvp_challenge(s, challenger.id, opponent.id, club.id, "pushup_master")
        async with session_factory() as s:
            declined = await respond_to_pvp_challenge(s, match.id, opponent.id, False)
        assert declined.status == REJECTED
        async with session_factory() as s:
            with pytest.raises(InvalidState):
                await respond_to_pvp_challenge(s, match.id, opponent.id, True)

    @pytest.mark.asyncio
    async def test_score_before_accept(self, session_factory, make_student, club):
        challenger = await make_student()
        opponent = await make_student()
        async with session_factory() as s:
            match = await create_pvp_challenge(s, challenger.id, opponent.id, club.id, "pushup_master")
        async with session_factory() as s:
            with pytest.raises(InvalidState):
                await submit_pvp_score(s, match.id, challenger.id, 10)

    @pytest.mark.asyncio
    async def test_settlement(self, session_factory, make_student, club, balance_of, notifier):
        challenger, opponent, match_id = await self._active_match(session_factory, make_student, club)

        async with session_factory() as s:
            first = await submit_pvp_score(s, match_id, challenger.id, 80, notifier=notifier)
        assert first.status == ACTIVE
        assert first.waiting_for == "opponent"
        assert await balance_of(challenger.id) == 0

        async with session_factory() as s:
            final = await submit_pvp_score(s, match_id, opponent.id, 95, notifier=notifier)
        assert final.status == COMPLETED
        assert final.winner_id == opponent.id
        assert final.scores == {"challenger": 80, "opponent": 95}
        assert final.xp_awarded == {"challenger": 15, "opponent": 75}
        assert await balance_of(challenger.id) == 15
        assert await balance_of(opponent.id) == 75
        assert notifier.kinds() == ["pvp_completed", "pvp_completed"]

        async with session_factory() as s:
            reasons = (await s.execute(select(XPTransaction.reason))).scalars().all()
        assert reasons == ["pvp", "pvp"]

    @pytest.mark.asyncio
    async def test_tie_settlement(self, session_factory, make_student, club, balance_of):
        challenger, opponent, match_id = await self._active_match(session_factory, make_student, club)
        async with session_factory() as s:
            await submit_pvp_score(s, match_id, challenger.id, 50)
        async with session_factory() as s:
            final = await submit_pvp_score(s, match_id, opponent.id, 50)
        assert final.winner_id is None
        assert await balance_of(challenger.id) == 15
        assert await balance_of(opponent.id) == 15

    @pytest.mark.asyncio
    async def test_duplicate_score(self, session_factory, make_student, club):
        challenger, _, match_id = await self._active_match(session_factory, make_student, club)
        async with session_factory() as s:
            await submit_pvp_score(s, match_id, challenger.id, 10)
        async with session_factory() as s:
            with pytest.raises(InvalidState):
                await submit_pvp_score(s, match_id, challenger.id, 99)

    @pytest.mark.asyncio
    async def test_outsider_cannot_score(self, session_factory, make_student, club):
        _, _, match_id = await self._active_match(session_factory, make_student, club)
        outsider = await make_student()
        async with session_factory() as s:
            with pytest.raises(PermissionDenied):
                await submit_pvp_score(s, match_id, outsider.id, 10)

    @pytest.mark.asyncio
    async def test_completed_match_rejects_scores(self, session_factory, make_student, club):
        challenger, opponent, match_id = await self._active_match(session_factory, make_student, club)
        async with session_factory() as s:
            await submit_pvp_score(s, match_id, challenger.id, 1)
        async with session_factory() as s:
            await submit_pvp_score(s, match_id, opponent.id, 2)
        async with session_factory() as s:
            with pytest.raises(InvalidState):
                await submit_pvp_score(s, match_id, opponent.id, 3)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [-1, True, "10"])
    async def test_invalid_score(self, db_session, score):
        with pytest.raises(ValidationError):
            await submit_pvp_score(db_session, uuid.uuid4(), uuid.uuid4(), score)

    @pytest.mark.asyncio
    async def test_history_shows_each_sides_xp(self, session_factory, make_student, club):
        challenger, opponent, match_id = await self._active_match(session_factory, make_student, club)
        async with session_factory() as s:
            await submit_pvp_score(s, match_id, challenger.id, 80)
        async with session_factory() as s:
            await submit_pvp_score(s, match_id, opponent.id, 95)

        async with session_factory() as s:
            mine = await get_challenge_history(s, challenger.id)
            theirs = await get_challenge_history(s, opponent.id)
        assert (mine[0].mode, mine[0].xp_awarded, mine[0].score) == ("PVP", 15, 80)
        assert (theirs[0].xp_awarded, theirs[0].score) == (75, 95)


class TestPvPDailyLimit:
    """A pair of students earns duel XP once per day."""

    async def _play(self, session_factory, match_id, challenger_id, opponent_id, scores=(100, 0)):
        async with session_factory() as s:
            await submit_pvp_score(s, match_id, challenger_id, scores[0])
        async with session_factory() as s:
            return await submit_pvp_score(s, match_id, opponent_id, scores[1])

    async def _open(self, session_factory, challenger_id, opponent_id, club_id, accept=True):
        async with session_factory() as s:
            match = await create_pvp_challenge(s, challenger_id, opponent_id, club_id, "pushup_master")
        if accept:
            async with session_factory() as s:
                await respond_to_pvp_challenge(s, match.id, opponent_id, True)
        return match.id

    @pytest.mark.asyncio
    async def test_rematch_same_day_denied(self, session_factory, make_student, club, balance_of):
        a = await make_student(name="A")
        b = await make_student(name="B")
        match_id = await self._open(session_factory, a.id, b.id, club.id)
        await self._play(session_factory, match_id, a.id, b.id)

        async with session_factory() as s:
            with pytest.raises(RateLimited) as exc_info:
                await create_pvp_challenge(s, a.id, b.id, club.id, "pushup_master")
        assert exc_info.value.balance == 75

        async with session_factory() as s:
            with pytest.raises(RateLimited) as exc_info:
                await create_pvp_challenge(s, b.id, a.id, club.id, "pushup_master")
        assert exc_info.value.balance == 15

        assert await balance_of(a.id) == 75
        assert await balance_of(b.id) == 15

    @pytest.mark.asyncio
    async def test_other_pairs_unaffected(self, session_factory, make_student, club):
        a = await make_student()
        b = await make_student()
        c = await make_student()
        match_id = await self._open(session_factory, a.id, b.id, club.id)
        await self._play(session_factory, match_id, a.id, b.id)

        second = await self._open(session_factory, a.id, c.id, club.id)
        final = await self._play(session_factory, second, a.id, c.id)
        assert final.xp_awarded == {"challenger": 75, "opponent": 15}

    @pytest.mark.asyncio
    async def test_duels_opened_in_parallel_pay_once(self, session_factory, make_student, club, balance_of):
        a = await make_student()
        b = await make_student()
        first = await self._open(session_factory, a.id, b.id, club.id)
        second = await self._open(session_factory, a.id, b.id, club.id)

        await self._play(session_factory, first, a.id, b.id)
        capped = await self._play(session_factory, second, a.id, b.id)
        assert capped.status == COMPLETED
        assert capped.winner_id == a.id
        assert capped.xp_awarded == {"challenger": 0, "opponent": 0}
        assert await balance_of(a.id) == 75
        assert await balance_of(b.id) == 15

        async with session_factory() as s:
            rows = (await s.execute(select(XPTransaction.reason))).scalars().all()
        assert rows == ["pvp", "pvp"]

    @pytest.mark.asyncio
    async def test_declined_duel_does_not_count(self, session_factory, make_student, club):
        a = await make_student()
        b = await make_student()
        declined = await self._open(session_factory, a.id, b.id, club.id, accept=False)
        async with session_factory() as s:
            await respond_to_pvp_challenge(s, declined, b.id, False)

        match_id = await self._open(session_factory, a.id, b.id, club.id)
        final = await self._play(session_factory, match_id, a.id, b.id)
        assert final.xp_awarded == {"challenger": 75, "opponent": 15}

    @pytest.mark.asyncio
    async def test_limit_is_configurable(self, session_factory, make_student, club, monkeypatch):
        monkeypatch.setenv("DOJO_PVP_PAIR_DAILY_LIMIT", "2")
        get_settings.cache_clear()
        a = await make_student()
        b = await make_student()
        for _ in range(2):
            match_id = await self._open(session_factory, a.id, b.id, club.id)
            final = await self._play(session_factory, match_id, a.id, b.id)
            assert final.xp_awarded == {"challenger": 75, "opponent": 15}

        async with session_factory() as s:
            with pytest.raises(RateLimited):
                await create_pvp_challenge(s, a.id, b.id, club.id, "pushup_master")
