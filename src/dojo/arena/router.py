"""Arena API endpoints: solo submissions, coach verification and PvP."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.arena.catalog import ARENA_CHALLENGES
from dojo.arena.pvp_service import (
    create_pvp_challenge,
    list_pending_pvp,
    respond_to_pvp_challenge,
    submit_pvp_score,
)
from dojo.arena.schemas import (
    ChallengeHistoryItem,
    ChallengeHistoryResponse,
    PendingPvPItem,
    PendingPvPResponse,
    PendingVerificationItem,
    PendingVerificationResponse,
    PvPChallengeResponse,
    PvPCreateRequest,
    PvPRespondRequest,
    PvPScoreRequest,
    PvPScoreResponse,
    SubmitChallengeRequest,
    SubmitChallengeResponse,
    TrustSubmitRequest,
    VerifyRequest,
    VerifyResponse,
)
from dojo.arena.submission_service import (
    TrustClaim,
    VideoClaim,
    get_challenge_history,
    list_pending_verifications,
    submit_challenge,
    verify_submission,
)
from dojo.auth.dependencies import ensure_club_access, ensure_self_or_coach, get_current_actor, require_coach
from dojo.auth.jwt import Actor
from dojo.database import get_session
from dojo.db.models import ChallengeSubmission
from dojo.dependencies import get_notifier
from dojo.ids import parse_uuid
from dojo.notifications.dispatcher import NotificationDispatcher

router = APIRouter(prefix="/api/v1", tags=["Arena"])


def _challenge_name(key: str) -> str:
    meta = ARENA_CHALLENGES.get(key)
    return meta.name if meta else key


def _pvp_response(match: ChallengeSubmission) -> PvPChallengeResponse:
    return PvPChallengeResponse(
        id=str(match.id),
        challenger_id=str(match.student_id),
        opponent_id=str(match.opponent_id),
        challenge_key=match.challenge_key,
        status=match.status,
        created_at=match.created_at,
    )


# ── Solo challenges ──


@router.post("/challenges/submit", response_model=SubmitChallengeResponse)
async def submit_challenge_endpoint(
    body: SubmitChallengeRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Submit a trust-based or video-proof challenge completion."""
    sid = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    if isinstance(body, TrustSubmitRequest):
        claim = TrustClaim(student_id=sid, challenge_key=body.challenge_key, score=body.score)
    else:
        claim = VideoClaim(
            student_id=sid, challenge_key=body.challenge_key, video_url=body.video_url, score=body.score
        )
    result = await submit_challenge(db, claim, notifier=notifier)
    return SubmitChallengeResponse(
        submission_id=str(result.submission_id),
        status=result.status,
        xp_awarded=result.xp_awarded,
        new_total_xp=result.new_total_xp,
        remaining_for_challenge=result.remaining_for_challenge,
        message=result.message,
    )


@router.post("/challenges/verify", response_model=VerifyResponse)
async def verify_challenge_endpoint(
    body: VerifyRequest,
    coach: Actor = Depends(require_coach),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    """Approve or reject a pending video submission."""
    submission_id = parse_uuid(body.submission_id, "submission_id")
    result = await verify_submission(db, submission_id, body.approve, coach, body.notes, notifier=notifier)
    return VerifyResponse(
        submission_id=str(result.submission_id),
        status=result.status,
        xp_awarded=result.xp_awarded,
        new_total_xp=result.new_total_xp,
    )


@router.get("/challenges/pending-verification/{club_id}", response_model=PendingVerificationResponse)
async def pending_verification_endpoint(
    club_id: str,
    coach: Actor = Depends(require_coach),
    db: AsyncSession = Depends(get_session),
):
    cid = parse_uuid(club_id, "club_id")
    ensure_club_access(coach, cid)
    rows = await list_pending_verifications(db, cid)
    return PendingVerificationResponse(
        submissions=[
            PendingVerificationItem(
                id=str(s.id),
                student_id=str(s.student_id),
                student_name=name,
                challenge_key=s.challenge_key,
                challenge_name=_challenge_name(s.challenge_key),
                video_url=s.video_url,
                score=s.score,
                xp_pending=s.xp_awarded,
                created_at=s.created_at,
            )
            for s, name in rows
        ]
    )


@router.get("/challenges/history", response_model=ChallengeHistoryResponse)
async def challenge_history_endpoint(
    student_id: str = Query(...),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    items = await get_challenge_history(db, sid, limit)
    return ChallengeHistoryResponse(
        history=[
            ChallengeHistoryItem(
                id=str(i.id),
                challenge_key=i.challenge_key,
                name=i.name,
                icon=i.icon,
                category=i.category,
                mode=i.mode,
                status=i.status,
                proof_type=i.proof_type,
                xp_awarded=i.xp_awarded,
                score=i.score,
                created_at=i.created_at,
            )
            for i in items
        ]
    )


# ── PvP ──


@router.post("/pvp/create", response_model=PvPChallengeResponse)
async def create_pvp_endpoint(
    body: PvPCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    challenger_id = parse_uuid(body.challenger_id, "challenger_id")
    await ensure_self_or_coach(db, actor, challenger_id)
    match = await create_pvp_challenge(
        db,
        challenger_id,
        parse_uuid(body.opponent_id, "opponent_id"),
        parse_uuid(body.club_id, "club_id"),
        body.challenge_key,
        notifier=notifier,
    )
    return _pvp_response(match)


@router.post("/pvp/respond", response_model=PvPChallengeResponse)
async def respond_pvp_endpoint(
    body: PvPRespondRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    sid = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    match = await respond_to_pvp_challenge(
        db, parse_uuid(body.challenge_id, "challenge_id"), sid, body.accept, notifier=notifier
    )
    return _pvp_response(match)


@router.post("/pvp/submit-score", response_model=PvPScoreResponse)
async def submit_pvp_score_endpoint(
    body: PvPScoreRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    notifier: NotificationDispatcher = Depends(get_notifier),
):
    sid = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    result = await submit_pvp_score(
        db, parse_uuid(body.challenge_id, "challenge_id"), sid, body.score, notifier=notifier
    )
    return PvPScoreResponse(
        challenge_id=str(result.challenge_id),
        status=result.status,
        scores=result.scores,
        winner_id=str(result.winner_id) if result.winner_id else None,
        xp_awarded=result.xp_awarded,
        waiting_for=result.waiting_for,
    )


@router.get("/pvp/pending/{student_id}", response_model=PendingPvPResponse)
async def pending_pvp_endpoint(
    student_id: str,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    rows = await list_pending_pvp(db, sid)
    return PendingPvPResponse(
        challenges=[
            PendingPvPItem(
                id=str(m.id),
                challenger_id=str(m.student_id),
                challenger_name=name,
                challenge_key=m.challenge_key,
                challenge_name=_challenge_name(m.challenge_key),
                created_at=m.created_at,
            )
            for m, name in rows
        ]
    )
