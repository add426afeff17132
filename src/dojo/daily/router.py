"""Daily mystery challenge endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import ensure_self_or_coach, get_current_actor
from dojo.auth.jwt import Actor
from dojo.daily.daily_service import get_todays_daily_challenge, submit_daily_challenge_answer
from dojo.daily.generator import BaseContentGenerator
from dojo.daily.schemas import DailyAnswerRequest, DailyAnswerResponse, DailyChallengeResponse, QuizData
from dojo.database import get_session
from dojo.dependencies import get_generator
from dojo.ids import parse_uuid

router = APIRouter(prefix="/api/v1", tags=["Daily Challenge"])


@router.get("/daily-challenge", response_model=DailyChallengeResponse)
async def get_daily_challenge(
    student_id: str = Query(...),
    belt: str = Query(..., min_length=1, max_length=100),
    club_id: str | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
    generator: BaseContentGenerator = Depends(get_generator),
):
    """Today's quiz for the student's belt, or their result if already done."""
    sid = parse_uuid(student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    cid = parse_uuid(club_id, "club_id") if club_id else actor.club_id
    view = await get_todays_daily_challenge(db, generator, sid, belt, cid)
    await db.commit()
    return DailyChallengeResponse(
        id=view.id,
        title=view.title,
        description=view.description,
        xp_reward=view.xp_reward,
        type=view.type,
        target_belt=view.target_belt,
        date=view.challenge_date,
        source=view.source,
        quiz_data=QuizData(**view.quiz_data) if view.quiz_data else None,
        completed=view.completed,
        xp_awarded=view.xp_awarded,
        is_correct=view.is_correct,
    )


@router.post("/daily-challenge/submit", response_model=DailyAnswerResponse)
async def submit_daily_challenge(
    body: DailyAnswerRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    sid = parse_uuid(body.student_id, "student_id")
    await ensure_self_or_coach(db, actor, sid)
    result = await submit_daily_challenge_answer(
        db, sid, body.challenge_id, body.selected_index, body.is_correct, body.xp_reward
    )
    await db.commit()
    return DailyAnswerResponse(
        is_correct=result.is_correct,
        xp_awarded=result.xp_awarded,
        new_total_xp=result.new_total_xp,
        explanation=result.explanation,
    )
