"""Daily mystery quiz: one generated quiz per (UTC day, belt), shared by everyone.

The first request of the day for a belt calls the content generator and
caches the result; every later request reads the cached row. When two
requests race to fill the same slot, the unique (date, target_belt)
constraint picks the winner and the loser re-reads it. When generation
fails the caller gets a fixed fallback quiz that is never persisted, so
the next request retries generation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.config import get_settings
from dojo.daily.generator import GENERATED_XP_REWARD, BaseContentGenerator
from dojo.day_utils import utc_now, utc_today
from dojo.db.models import ChallengeSubmission, Club, DailyChallenge
from dojo.errors import NotFound, RateLimited, UpstreamUnavailable, ValidationError
from dojo.gamification.guard import WindowPolicy, check_and_reserve
from dojo.gamification.xp_service import award_xp, get_balance, resolve_student
from dojo.ids import is_uuid

logger = structlog.get_logger()

DAILY_CHALLENGE_KEY = "daily_mystery"

FALLBACK_TITLE = "Master's Wisdom"
FALLBACK_DESCRIPTION = "Test your knowledge of martial arts belt symbolism!"
FALLBACK_QUIZ = {
    "question": "What does the color of the White Belt represent?",
    "options": ["Danger", "Innocence/Beginner", "Mastery", "Fire"],
    "correctIndex": 1,
    "explanation": (
        "The White Belt represents innocence and a beginner's pure mind - "
        "ready to absorb new knowledge like a blank canvas!"
    ),
}


@dataclass
class DailyChallengeView:
    id: str
    title: str
    description: str
    xp_reward: int
    target_belt: str
    challenge_date: date
    source: str  # cache | generated | fallback | completed
    type: str = "quiz"
    quiz_data: dict = field(default_factory=dict)
    completed: bool = False
    xp_awarded: int | None = None
    is_correct: bool | None = None


@dataclass
class QuizResult:
    is_correct: bool
    xp_awarded: int
    new_total_xp: int
    explanation: str | None = None


def _view_from_row(row: DailyChallenge, source: str) -> DailyChallengeView:
    return DailyChallengeView(
        id=str(row.id),
        title=row.title,
        description=row.description,
        xp_reward=row.xp_reward,
        target_belt=row.target_belt,
        challenge_date=row.challenge_date,
        source=source,
        type=row.type,
        quiz_data=dict(row.quiz_data),
    )


def fallback_challenge(belt: str, day: date | None = None) -> DailyChallengeView:
    """The fixed quiz served when generation fails. Never stored."""
    now = utc_now()
    return DailyChallengeView(
        id=f"fallback-{int(now.timestamp() * 1000)}",
        title=FALLBACK_TITLE,
        description=FALLBACK_DESCRIPTION,
        xp_reward=get_settings().fallback_challenge_xp,
        target_belt=belt,
        challenge_date=day or now.date(),
        source="fallback",
        quiz_data=dict(FALLBACK_QUIZ),
    )


async def _find_cached(db: AsyncSession, day: date, belt: str) -> DailyChallenge | None:
    result = await db.execute(
        select(DailyChallenge).where(
            DailyChallenge.challenge_date == day,
            DailyChallenge.target_belt == belt,
        )
    )
    return result.scalar_one_or_none()


async def _completed_today(db: AsyncSession, student_id: uuid.UUID, day: date) -> ChallengeSubmission | None:
    result = await db.execute(
        select(ChallengeSubmission)
        .where(
            ChallengeSubmission.student_id == student_id,
            ChallengeSubmission.mode == "QUIZ",
            ChallengeSubmission.submitted_on == day,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_todays_daily_challenge(
    db: AsyncSession,
    generator: BaseContentGenerator,
    student_id: uuid.UUID,
    belt: str,
    club_id: uuid.UUID | None = None,
) -> DailyChallengeView:
    """Return today's quiz for ``belt``, generating and caching it on first use.

    Does not commit; the caller commits so a freshly generated row is kept.
    """
    belt_key = (belt or "").strip().lower()
    if not belt_key:
        raise ValidationError("belt is required")
    day = utc_today()

    done = await _completed_today(db, student_id, day)
    if done is not None:
        return DailyChallengeView(
            id=str(done.daily_challenge_id or done.challenge_key),
            title="",
            description="",
            xp_reward=done.xp_awarded,
            target_belt=belt_key,
            challenge_date=day,
            source="completed",
            completed=True,
            xp_awarded=done.xp_awarded,
            is_correct=done.is_correct,
        )

    cached = await _find_cached(db, day, belt_key)
    if cached is not None:
        return _view_from_row(cached, "cache")

    art_type = get_settings().default_art_type
    if club_id is not None:
        club = await db.get(Club, club_id)
        if club is not None and club.art_type:
            art_type = club.art_type

    try:
        quiz = await generator.generate(belt_key, art_type)
    except UpstreamUnavailable:
        logger.warning("daily_challenge_fallback", belt=belt_key, day=day.isoformat())
        return fallback_challenge(belt_key, day)

    try:
        async with db.begin_nested():
            row = DailyChallenge(
                challenge_date=day,
                target_belt=belt_key,
                title=quiz.title,
                description=quiz.description,
                xp_reward=GENERATED_XP_REWARD,
                type="quiz",
                quiz_data=quiz.quiz_data(),
                created_at=utc_now(),
            )
            db.add(row)
    except IntegrityError:
        winner = await _find_cached(db, day, belt_key)
        if winner is None:
            raise
        logger.info("daily_challenge_race_lost", belt=belt_key, day=day.isoformat())
        return _view_from_row(winner, "cache")

    logger.info("daily_challenge_cached", belt=belt_key, day=day.isoformat(), challenge_id=str(row.id))
    return _view_from_row(row, "generated")


async def submit_daily_challenge_answer(
    db: AsyncSession,
    student_id: uuid.UUID,
    challenge_id: str,
    selected_index: int,
    is_correct: bool | None = None,
    xp_reward: int | None = None,
) -> QuizResult:
    """Grade an answer and award XP. One completion per student per UTC day.

    Cached quizzes are graded server-side. Fallback quizzes have no stored
    row, so the client's verdict is accepted but the reward is capped at
    the fallback amount. Does not commit.
    """
    if not challenge_id:
        raise ValidationError("challenge_id is required")
    student = await resolve_student(db, student_id)
    day = utc_today()

    decision = await check_and_reserve(
        db, student_id, DAILY_CHALLENGE_KEY, WindowPolicy.DAILY_QUIZ_ONCE, day=day
    )
    if not decision.allowed:
        raise RateLimited(decision.reason or "Already completed today", balance=await get_balance(db, student_id))

    daily_id: uuid.UUID | None = None
    explanation: str | None = None
    if is_uuid(challenge_id):
        row = await db.get(DailyChallenge, uuid.UUID(challenge_id))
        if row is None:
            raise NotFound("Daily challenge not found")
        options = row.quiz_data.get("options", [])
        if not 0 <= selected_index < len(options):
            raise ValidationError("selected_index out of range")
        correct = selected_index == row.quiz_data.get("correctIndex")
        reward = row.xp_reward if correct else 0
        explanation = row.quiz_data.get("explanation")
        daily_id = row.id
    else:
        cap = get_settings().fallback_challenge_xp
        correct = True if is_correct is None else bool(is_correct)
        claimed = cap if xp_reward is None else max(0, min(int(xp_reward), cap))
        reward = claimed if correct else 0
        if challenge_id.startswith("fallback-"):
            explanation = FALLBACK_QUIZ["explanation"]

    now = utc_now()
    db.add(ChallengeSubmission(
        student_id=student_id,
        club_id=student.club_id,
        challenge_key=DAILY_CHALLENGE_KEY,
        daily_challenge_id=daily_id,
        mode="QUIZ",
        status="COMPLETED",
        proof_type="TRUST",
        xp_awarded=reward,
        answer=str(selected_index),
        is_correct=correct,
        submitted_on=day,
        created_at=now,
        resolved_at=now,
    ))
    await db.flush()

    if reward > 0:
        new_total = await award_xp(
            db, student_id, reward, "daily_challenge", {"challenge_id": challenge_id, "correct": correct}
        )
    else:
        new_total = await get_balance(db, student_id)

    logger.info(
        "daily_challenge_answered",
        student_id=str(student_id),
        challenge_id=challenge_id,
        correct=correct,
        xp=reward,
    )
    return QuizResult(is_correct=correct, xp_awarded=reward, new_total_xp=new_total, explanation=explanation)
