"""Home Dojo API endpoints: habit tracker and family challenges."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import ensure_self_or_coach, get_current_actor
from dojo.auth.jwt import Actor
from dojo.database import get_session
from dojo.db.models import CustomHabit
from dojo.home.family_service import get_family_status, submit_family_challenge
from dojo.home.habit_service import (
    check_in_habit,
    create_custom_habit,
    deactivate_custom_habit,
    get_habit_status,
    list_custom_habits,
)
from dojo.home.schemas import (
    CustomHabitCreateRequest,
    CustomHabitListResponse,
    CustomHabitResponse,
    FamilyCompletion,
    FamilyStatusResponse,
    FamilySubmitRequest,
    FamilySubmitResponse,
    HabitCheckRequest,
    HabitCheckResponse,
    HabitStatusResponse,
)
from dojo.ids import parse_uuid

router = APIRouter(prefix="/api/v1", tags=["Home Dojo"])


def _habit_response(h: CustomHabit) -> CustomHabitResponse:
    return CustomHabitResponse(
        id=str(h.id), title=h.title, icon=h.icon, is_active=h.is_active, created_at=h.created_at
    )


# ── Habits ──


@router.post("/habits/check", response_model=HabitCheckResponse)
async def check_habit(
    body: HabitCheckRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    r = await check_in_habit(db, sid, body.habit_name)
    return HabitCheckResponse(
        habit_name=r.habit_name,
        xp_awarded=r.xp_awarded,
        new_total_xp=r.new_total_xp,
        daily_xp_earned=r.daily_xp_earned,
        daily_xp_cap=r.daily_xp_cap,
        at_daily_limit=r.at_daily_limit,
        message=r.message,
    )


@router.get("/habits/status", response_model=HabitStatusResponse)
async def habit_status(
    student_id: str = Query(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    s = await get_habit_status(db, sid)
    return HabitStatusResponse(
        completed_habits=s.completed_habits,
        daily_xp_earned=s.daily_xp_earned,
        daily_xp_cap=s.daily_xp_cap,
        total_xp=s.total_xp,
        streak=s.streak,
    )


@router.get("/habits/custom", response_model=CustomHabitListResponse)
async def get_custom_habits(
    student_id: str = Query(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    habits = await list_custom_habits(db, sid)
    return CustomHabitListResponse(habits=[_habit_response(h) for h in habits])


@router.post("/habits/custom", response_model=CustomHabitResponse)
async def add_custom_habit(
    body: CustomHabitCreateRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    habit = await create_custom_habit(db, sid, body.title, body.icon)
    return _habit_response(habit)


@router.delete("/habits/custom/{habit_id}")
async def remove_custom_habit(
    habit_id: str,
    student_id: str = Query(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    await deactivate_custom_habit(db, sid, parse_uuid(habit_id, "habit_id"))
    return {"status": "deleted"}


# ── Family challenges ──


@router.post("/family-challenges/submit", response_model=FamilySubmitResponse)
async def submit_family(
    body: FamilySubmitRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    r = await submit_family_challenge(db, sid, body.challenge_id, body.won)
    return FamilySubmitResponse(
        challenge_id=r.challenge_id,
        xp_awarded=r.xp_awarded,
        new_total_xp=r.new_total_xp,
        won=r.won,
        message=r.message,
    )


@router.get("/family-challenges/status", response_model=FamilyStatusResponse)
async def family_status(
    student_id: str = Query(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    s = await get_family_status(db, sid)
    return FamilyStatusResponse(
        completed=[FamilyCompletion(**c) for c in s.completed],
        total_xp_today=s.total_xp_today,
    )
