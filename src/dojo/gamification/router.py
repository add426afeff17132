"""XP ledger API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import ensure_club_access, ensure_self_or_coach, get_current_actor, require_coach
from dojo.auth.jwt import Actor
from dojo.database import get_session
from dojo.gamification.schemas import (
    AwardXPRequest,
    SpendXPRequest,
    XPBalanceResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)
from dojo.gamification.xp_service import award_xp, get_balance, get_student, get_xp_history, spend_xp
from dojo.ids import parse_uuid

router = APIRouter(prefix="/api/v1", tags=["XP"])


@router.post("/xp/award", response_model=XPBalanceResponse)
async def award_xp_endpoint(
    body: AwardXPRequest,
    coach: Actor = Depends(require_coach),
    db: AsyncSession = Depends(get_session),
):
    """Manual coach bonus."""
    student_id = parse_uuid(body.student_id, "student_id")
    student = await get_student(db, student_id)
    ensure_club_access(coach, student.club_id)
    new_total = await award_xp(
        db, student_id, body.amount, body.reason, {"awarded_by": str(coach.id)}
    )
    await db.commit()
    return XPBalanceResponse(student_id=str(student_id), total_xp=new_total)


@router.post("/xp/spend", response_model=XPBalanceResponse)
async def spend_xp_endpoint(
    body: SpendXPRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Spend XP on a reward. Fails with 409 and the current balance when short."""
    student_id = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, student_id)
    new_total = await spend_xp(db, student_id, body.amount, body.reason)
    await db.commit()
    return XPBalanceResponse(student_id=str(student_id), total_xp=new_total)


@router.get("/students/{student_id}/xp", response_model=XPBalanceResponse)
async def get_student_xp(
    student_id: str,
    _actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(student_id, "student_id")
    return XPBalanceResponse(student_id=str(sid), total_xp=await get_balance(db, sid))


@router.get("/students/{student_id}/xp/history", response_model=XPHistoryResponse)
async def get_student_xp_history(
    student_id: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Get XP ledger history (paginated, newest first)."""
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    entries, total = await get_xp_history(db, sid, page, per_page)
    return XPHistoryResponse(
        entries=[
            XPHistoryEntry(
                amount=e.amount,
                type=e.type,
                reason=e.reason,
                details=e.details or {},
                created_at=e.created_at,
            )
            for e in entries
        ],
        total=total,
        page=page,
        per_page=per_page,
    )
