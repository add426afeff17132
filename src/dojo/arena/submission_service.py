"""Arena submissions: trust-based and video-verified challenge completions.

Trust claims award the catalog reward immediately, limited per challenge
per day. Video claims are a premium feature: they are stored as PENDING
with a multiplied reward and pay out only when a coach of the student's
club approves them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.arena.catalog import ARENA_CHALLENGES, get_arena_challenge
from dojo.auth.dependencies import ensure_club_access
from dojo.auth.jwt import Actor
from dojo.config import get_settings
from dojo.day_utils import utc_now, utc_today
from dojo.db.models import ChallengeSubmission, Club, Student
from dojo.errors import (
    EntitlementDenied,
    InvalidState,
    NotFound,
    PermissionDenied,
    RateLimited,
    ValidationError,
)
from dojo.gamification.guard import WindowPolicy, check_and_reserve
from dojo.gamification.xp_service import award_xp, get_balance, resolve_student
from dojo.notifications.dispatcher import NotificationDispatcher

logger = structlog.get_logger()


@dataclass(frozen=True)
class TrustClaim:
    student_id: uuid.UUID
    challenge_key: str
    score: int | None = None
    proof_type: Literal["TRUST"] = "TRUST"


@dataclass(frozen=True)
class VideoClaim:
    student_id: uuid.UUID
    challenge_key: str
    video_url: str
    score: int | None = None
    proof_type: Literal["VIDEO"] = "VIDEO"


Claim = TrustClaim | VideoClaim


@dataclass
class SubmissionResult:
    submission_id: uuid.UUID
    status: str
    xp_awarded: int
    new_total_xp: int
    remaining_for_challenge: int | None = None
    message: str = ""


@dataclass
class VerificationResult:
    submission_id: uuid.UUID
    status: str
    xp_awarded: int
    new_total_xp: int


@dataclass
class HistoryItem:
    id: uuid.UUID
    challenge_key: str
    name: str
    icon: str
    category: str
    mode: str
    status: str
    proof_type: str
    xp_awarded: int
    score: int | None
    created_at: datetime


def coach_channel(club_id: uuid.UUID) -> str:
    return f"club:{club_id}:coaches"


def student_channel(student_id: uuid.UUID) -> str:
    return f"student:{student_id}"


async def _has_video_entitlement(db: AsyncSession, student: Student) -> bool:
    if student.premium_status != "none":
        return True
    club = await db.get(Club, student.club_id)
    return bool(club and club.parent_premium_enabled)


async def submit_challenge(
    db: AsyncSession,
    claim: Claim,
    *,
    notifier: NotificationDispatcher | None = None,
) -> SubmissionResult:
    """Record a challenge completion and award or queue its XP."""
    match claim:
        case TrustClaim():
            return await _submit_trust(db, claim)
        case VideoClaim():
            return await _submit_video(db, claim, notifier)
        case _:
            raise ValidationError("Unsupported proof type")


async def _submit_trust(db: AsyncSession, claim: TrustClaim) -> SubmissionResult:
    challenge = get_arena_challenge(claim.challenge_key)
    student = await resolve_student(db, claim.student_id)
    day = utc_today()

    decision = await check_and_reserve(
        db, student.id, challenge.key, WindowPolicy.TRUST_PER_CHALLENGE, day=day
    )
    if not decision.allowed:
        balance = await get_balance(db, student.id)
        await db.rollback()
        raise RateLimited(decision.reason or "Daily limit reached", balance=balance)

    now = utc_now()
    submission = ChallengeSubmission(
        student_id=student.id,
        club_id=student.club_id,
        challenge_key=challenge.key,
        mode="SOLO_TRUST",
        status="COMPLETED",
        proof_type="TRUST",
        xp_awarded=challenge.base_xp,
        score=claim.score,
        submitted_on=day,
        created_at=now,
        resolved_at=now,
    )
    db.add(submission)
    await db.flush()

    new_total = await award_xp(
        db,
        student.id,
        challenge.base_xp,
        "arena_trust",
        {"challenge_key": challenge.key, "submission_id": str(submission.id)},
    )
    await db.commit()

    logger.info(
        "trust_submission",
        student_id=str(student.id),
        challenge_key=challenge.key,
        xp=challenge.base_xp,
        new_total=new_total,
    )
    return SubmissionResult(
        submission_id=submission.id,
        status="COMPLETED",
        xp_awarded=challenge.base_xp,
        new_total_xp=new_total,
        remaining_for_challenge=decision.remaining - 1,
        message=f"Challenge complete! +{challenge.base_xp} XP",
    )


async def _submit_video(
    db: AsyncSession,
    claim: VideoClaim,
    notifier: NotificationDispatcher | None,
) -> SubmissionResult:
    video_url = (claim.video_url or "").strip()
    if not video_url:
        raise ValidationError("video_url is required for video proof")
    challenge = get_arena_challenge(claim.challenge_key)
    student = await resolve_student(db, claim.student_id)

    if not await _has_video_entitlement(db, student):
        balance = await get_balance(db, student.id)
        await db.rollback()
        raise EntitlementDenied("Video proof requires a premium subscription", balance=balance)

    pending_xp = challenge.base_xp * get_settings().video_xp_multiplier
    now = utc_now()
    submission = ChallengeSubmission(
        student_id=student.id,
        club_id=student.club_id,
        challenge_key=challenge.key,
        mode="SOLO_VIDEO",
        status="PENDING",
        proof_type="VIDEO",
        xp_awarded=pending_xp,
        score=claim.score,
        video_url=video_url,
        submitted_on=now.date(),
        created_at=now,
    )
    db.add(submission)
    await db.flush()
    balance = await get_balance(db, student.id)
    club_id = student.club_id
    student_name = student.name
    await db.commit()

    logger.info(
        "video_submission",
        student_id=str(claim.student_id),
        challenge_key=challenge.key,
        pending_xp=pending_xp,
    )
    if notifier is not None:
        await notifier.dispatch(
            coach_channel(club_id),
            "video_submitted",
            {
                "submission_id": str(submission.id),
                "student_id": str(claim.student_id),
                "student_name": student_name,
                "challenge_key": challenge.key,
                "challenge_name": challenge.name,
            },
        )

    return SubmissionResult(
        submission_id=submission.id,
        status="PENDING",
        xp_awarded=0,
        new_total_xp=balance,
        message=f"Video submitted! A coach will review it for {pending_xp} XP.",
    )


async def verify_submission(
    db: AsyncSession,
    submission_id: uuid.UUID,
    approve: bool,
    coach: Actor,
    notes: str | None = None,
    *,
    notifier: NotificationDispatcher | None = None,
) -> VerificationResult:
    """Approve or reject a pending video submission.

    The status change is a conditional UPDATE on ``status = 'PENDING'``,
    so of two concurrent verifications only one takes effect and XP is
    awarded at most once.
    """
    if not coach.is_coach:
        raise PermissionDenied("Coach role required")

    submission = await db.get(ChallengeSubmission, submission_id)
    if submission is None:
        raise NotFound("Submission not found")
    ensure_club_access(coach, submission.club_id)
    if submission.status != "PENDING":
        raise InvalidState(f"Submission is already {submission.status}")

    now = utc_now()
    new_status = "VERIFIED" if approve else "REJECTED"
    values: dict = {
        "status": new_status,
        "verified_by": coach.id,
        "coach_notes": notes,
        "resolved_at": now,
    }
    if not approve:
        values["xp_awarded"] = 0
    result = await db.execute(
        update(ChallengeSubmission)
        .where(ChallengeSubmission.id == submission_id, ChallengeSubmission.status == "PENDING")
        .values(**values)
        .returning(ChallengeSubmission.xp_awarded)
        .execution_options(synchronize_session=False)
    )
    stored_xp = result.scalar_one_or_none()
    if stored_xp is None:
        await db.rollback()
        raise InvalidState("Submission was already verified")

    student_id = submission.student_id
    if approve and stored_xp > 0:
        new_total = await award_xp(
            db,
            student_id,
            stored_xp,
            "video",
            {"submission_id": str(submission_id), "challenge_key": submission.challenge_key},
        )
    else:
        new_total = await get_balance(db, student_id)
    challenge_key = submission.challenge_key
    await db.commit()

    xp_awarded = stored_xp if approve else 0
    logger.info(
        "video_verified",
        submission_id=str(submission_id),
        coach_id=str(coach.id),
        approved=approve,
        xp=xp_awarded,
    )
    if notifier is not None:
        await notifier.dispatch(
            student_channel(student_id),
            "video_verified" if approve else "video_rejected",
            {
                "submission_id": str(submission_id),
                "challenge_key": challenge_key,
                "xp_awarded": xp_awarded,
                "coach_notes": notes,
            },
        )
    return VerificationResult(
        submission_id=submission_id,
        status=new_status,
        xp_awarded=xp_awarded,
        new_total_xp=new_total,
    )


async def list_pending_verifications(
    db: AsyncSession, club_id: uuid.UUID
) -> list[tuple[ChallengeSubmission, str]]:
    """Pending video submissions for a club, oldest first, with student names."""
    result = await db.execute(
        select(ChallengeSubmission, Student.name)
        .join(Student, Student.id == ChallengeSubmission.student_id)
        .where(
            ChallengeSubmission.club_id == club_id,
            ChallengeSubmission.status == "PENDING",
            ChallengeSubmission.mode == "SOLO_VIDEO",
        )
        .order_by(ChallengeSubmission.created_at.asc())
    )
    return [(row[0], row[1]) for row in result.all()]


def _pvp_xp_for(submission: ChallengeSubmission, student_id: uuid.UUID) -> int:
    role = "challenger" if submission.student_id == student_id else "opponent"
    return int((submission.pvp_scores or {}).get("xp", {}).get(role, 0))


async def get_challenge_history(
    db: AsyncSession, student_id: uuid.UUID, limit: int = 50
) -> list[HistoryItem]:
    """Recent submissions (including PvP as either side), newest first."""
    result = await db.execute(
        select(ChallengeSubmission)
        .where(
            or_(
                ChallengeSubmission.student_id == student_id,
                ChallengeSubmission.opponent_id == student_id,
            )
        )
        .order_by(ChallengeSubmission.created_at.desc())
        .limit(limit)
    )
    items = []
    for s in result.scalars():
        meta = ARENA_CHALLENGES.get(s.challenge_key)
        if s.mode == "PVP":
            xp = _pvp_xp_for(s, student_id)
            score = (s.pvp_scores or {}).get("challenger" if s.student_id == student_id else "opponent")
        else:
            xp = s.xp_awarded
            score = s.score
        items.append(HistoryItem(
            id=s.id,
            challenge_key=s.challenge_key,
            name=meta.name if meta else s.challenge_key.replace("_", " ").title(),
            icon=meta.icon if meta else "⭐",
            category=meta.category if meta else ("Daily" if s.mode == "QUIZ" else "Other"),
            mode=s.mode,
            status=s.status,
            proof_type=s.proof_type,
            xp_awarded=xp,
            score=score,
            created_at=s.created_at,
        ))
    return items
