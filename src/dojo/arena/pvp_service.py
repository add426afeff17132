"""PvP challenge engine: state machine and settlement.

State progression: PENDING_OPPONENT -> ACTIVE -> COMPLETED,
or PENDING_OPPONENT -> REJECTED. Transitions are validated; terminal
states accept nothing.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.arena.catalog import get_arena_challenge
from dojo.arena.submission_service import student_channel
from dojo.config import get_settings
from dojo.day_utils import utc_now, utc_today
from dojo.db.models import ChallengeSubmission, Student
from dojo.errors import InvalidState, NotFound, PermissionDenied, RateLimited, ValidationError
from dojo.gamification.guard import WindowPolicy, check_and_reserve
from dojo.gamification.xp_service import award_xp, get_balance, get_student
from dojo.notifications.dispatcher import NotificationDispatcher

logger = structlog.get_logger()

PENDING_OPPONENT = "PENDING_OPPONENT"
ACTIVE = "ACTIVE"
COMPLETED = "COMPLETED"
REJECTED = "REJECTED"

VALID_TRANSITIONS: dict[str, list[str]] = {
    PENDING_OPPONENT: [ACTIVE, REJECTED],
    ACTIVE: [COMPLETED],
    COMPLETED: [],
    REJECTED: [],
}

CHALLENGER = "challenger"
OPPONENT = "opponent"


@dataclass
class PvPResult:
    challenge_id: uuid.UUID
    status: str
    scores: dict[str, int] = field(default_factory=dict)
    winner_id: uuid.UUID | None = None
    xp_awarded: dict[str, int] = field(default_factory=dict)
    waiting_for: str | None = None


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises InvalidState if invalid."""
    valid = VALID_TRANSITIONS.get(current_status, [])
    if target_status not in valid:
        raise InvalidState(
            f"Invalid transition: {current_status} -> {target_status}. "
            f"Valid transitions: {valid}"
        )


def settle(
    challenger_id: uuid.UUID,
    opponent_id: uuid.UUID,
    challenger_score: int,
    opponent_score: int,
) -> tuple[uuid.UUID | None, dict[str, int]]:
    """Decide the winner and each side's XP. A tie pays both the consolation amount."""
    settings = get_settings()
    if challenger_score > opponent_score:
        return challenger_id, {CHALLENGER: settings.pvp_win_xp, OPPONENT: settings.pvp_lose_xp}
    if opponent_score > challenger_score:
        return opponent_id, {CHALLENGER: settings.pvp_lose_xp, OPPONENT: settings.pvp_win_xp}
    return None, {CHALLENGER: settings.pvp_lose_xp, OPPONENT: settings.pvp_lose_xp}


async def _get_match(db: AsyncSession, challenge_id: uuid.UUID, *, lock: bool = False) -> ChallengeSubmission:
    stmt = select(ChallengeSubmission).where(
        ChallengeSubmission.id == challenge_id,
        ChallengeSubmission.mode == "PVP",
    )
    if lock:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    match = result.scalar_one_or_none()
    if match is None:
        raise NotFound("PvP challenge not found")
    return match


async def create_pvp_challenge(
    db: AsyncSession,
    challenger_id: uuid.UUID,
    opponent_id: uuid.UUID,
    club_id: uuid.UUID,
    challenge_key: str,
    *,
    notifier: NotificationDispatcher | None = None,
) -> ChallengeSubmission:
    """Open a challenge between two students of the same club."""
    if challenger_id == opponent_id:
        raise ValidationError("You cannot challenge yourself")
    challenge = get_arena_challenge(challenge_key)
    challenger = await get_student(db, challenger_id)
    opponent = await get_student(db, opponent_id)
    if challenger.club_id != club_id or opponent.club_id != club_id:
        raise ValidationError("Both students must be in the same club")

    day = utc_today()
    decision = await check_and_reserve(db, challenger_id, str(opponent_id), WindowPolicy.PVP_PAIR_DAILY, day=day)
    if not decision.allowed:
        balance = await get_balance(db, challenger_id)
        await db.rollback()
        raise RateLimited(decision.reason or "Daily duel limit reached", balance=balance)

    now = utc_now()
    match = ChallengeSubmission(
        student_id=challenger_id,
        club_id=club_id,
        challenge_key=challenge.key,
        mode="PVP",
        status=PENDING_OPPONENT,
        proof_type="TRUST",
        xp_awarded=0,
        opponent_id=opponent_id,
        pvp_scores={},
        submitted_on=day,
        created_at=now,
    )
    db.add(match)
    await db.commit()

    logger.info(
        "pvp_created",
        challenge_id=str(match.id),
        challenger_id=str(challenger_id),
        opponent_id=str(opponent_id),
        challenge_key=challenge.key,
    )
    if notifier is not None:
        await notifier.dispatch(
            student_channel(opponent_id),
            "pvp_challenge",
            {
                "challenge_id": str(match.id),
                "challenger_id": str(challenger_id),
                "challenger_name": challenger.name,
                "challenge_name": challenge.name,
            },
        )
    return match


async def respond_to_pvp_challenge(
    db: AsyncSession,
    challenge_id: uuid.UUID,
    responder_id: uuid.UUID,
    accept: bool,
    *,
    notifier: NotificationDispatcher | None = None,
) -> ChallengeSubmission:
    """Opponent accepts (ACTIVE) or declines (REJECTED) a pending challenge."""
    match = await _get_match(db, challenge_id, lock=True)
    if match.opponent_id != responder_id:
        raise PermissionDenied("Only the challenged student can respond")

    target = ACTIVE if accept else REJECTED
    validate_transition(match.status, target)
    match.status = target
    if not accept:
        match.resolved_at = utc_now()
    challenger_id = match.student_id
    await db.commit()

    logger.info("pvp_responded", challenge_id=str(challenge_id), accepted=accept)
    if notifier is not None:
        await notifier.dispatch(
            student_channel(challenger_id),
            "pvp_accepted" if accept else "pvp_declined",
            {"challenge_id": str(challenge_id)},
        )
    return match


async def submit_pvp_score(
    db: AsyncSession,
    challenge_id: uuid.UUID,
    student_id: uuid.UUID,
    score: int,
    *,
    notifier: NotificationDispatcher | None = None,
) -> PvPResult:
    """Record one side's score; the second score settles the match.

    Settlement (both awards, status, winner, resolved_at) commits in one
    transaction.
    """
    if isinstance(score, bool) or not isinstance(score, int) or score < 0:
        raise ValidationError("Score must be a non-negative integer")

    match = await _get_match(db, challenge_id, lock=True)
    if match.status != ACTIVE:
        raise InvalidState(f"Challenge is {match.status}, not ACTIVE")
    if student_id == match.student_id:
        role = CHALLENGER
    elif student_id == match.opponent_id:
        role = OPPONENT
    else:
        raise PermissionDenied("You are not part of this challenge")

    scores = dict(match.pvp_scores or {})
    if role in scores:
        raise InvalidState("Score already submitted")
    scores[role] = score

    result = PvPResult(challenge_id=challenge_id, status=ACTIVE)
    if CHALLENGER in scores and OPPONENT in scores:
        validate_transition(match.status, COMPLETED)
        winner_id, xp = settle(match.student_id, match.opponent_id, scores[CHALLENGER], scores[OPPONENT])
        decision = await check_and_reserve(
            db, match.student_id, str(match.opponent_id), WindowPolicy.PVP_PAIR_DAILY, day=match.submitted_on
        )
        if decision.allowed:
            await award_xp(db, match.student_id, xp[CHALLENGER], "pvp", {"challenge_id": str(challenge_id)})
            await award_xp(db, match.opponent_id, xp[OPPONENT], "pvp", {"challenge_id": str(challenge_id)})
        else:
            # pair already paid out today; the duel still completes
            xp = {CHALLENGER: 0, OPPONENT: 0}
            logger.info("pvp_xp_capped", challenge_id=str(challenge_id), used=decision.used, limit=decision.limit)
        scores["xp"] = xp
        match.status = COMPLETED
        match.winner_id = winner_id
        match.resolved_at = utc_now()
        result.status = COMPLETED
        result.winner_id = winner_id
        result.xp_awarded = xp
    else:
        result.waiting_for = OPPONENT if role == CHALLENGER else CHALLENGER

    match.pvp_scores = scores
    result.scores = {k: v for k, v in scores.items() if k in (CHALLENGER, OPPONENT)}
    participants = (match.student_id, match.opponent_id)
    await db.commit()

    if result.status == COMPLETED:
        logger.info(
            "pvp_resolved",
            challenge_id=str(challenge_id),
            winner_id=str(result.winner_id) if result.winner_id else None,
            scores=result.scores,
        )
        if notifier is not None:
            for participant in participants:
                await notifier.dispatch(
                    student_channel(participant),
                    "pvp_completed",
                    {
                        "challenge_id": str(challenge_id),
                        "winner_id": str(result.winner_id) if result.winner_id else None,
                        "scores": result.scores,
                    },
                )
    return result


async def list_pending_pvp(db: AsyncSession, student_id: uuid.UUID) -> list[tuple[ChallengeSubmission, str]]:
    """Challenges waiting for this student's answer, newest first, with challenger names."""
    result = await db.execute(
        select(ChallengeSubmission, Student.name)
        .join(Student, Student.id == ChallengeSubmission.student_id)
        .where(
            ChallengeSubmission.mode == "PVP",
            ChallengeSubmission.opponent_id == student_id,
            ChallengeSubmission.status == PENDING_OPPONENT,
        )
        .order_by(ChallengeSubmission.created_at.desc())
    )
    return [(row[0], row[1]) for row in result.all()]
