"""Per-student daily limits.

``check_and_reserve`` takes the student's row lock before counting, so two
concurrent submissions for the same student serialize on the check and
the second one sees the first one's row. Callers write their submission
or log row inside the same transaction and commit once.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.config import get_settings
from dojo.day_utils import utc_today
from dojo.db.models import ChallengeSubmission, FamilyLog, HabitLog, Student
from dojo.errors import NotFound


class WindowPolicy(str, enum.Enum):
    TRUST_PER_CHALLENGE = "trust_per_challenge"
    HABIT_ONCE = "habit_once"
    HABIT_XP_CAP = "habit_xp_cap"
    FAMILY_ONCE = "family_once"
    DAILY_QUIZ_ONCE = "daily_quiz_once"
    PVP_PAIR_DAILY = "pvp_pair_daily"


LIMIT_MESSAGES = {
    WindowPolicy.TRUST_PER_CHALLENGE: "Daily Mission Complete! You can earn XP for this challenge again tomorrow.",
    WindowPolicy.HABIT_ONCE: "Habit already completed today",
    WindowPolicy.HABIT_XP_CAP: "Daily habit XP cap reached",
    WindowPolicy.FAMILY_ONCE: "Family challenge already completed today",
    WindowPolicy.DAILY_QUIZ_ONCE: "You already completed today's challenge",
    WindowPolicy.PVP_PAIR_DAILY: "You already finished a duel with this opponent today. Rematch tomorrow!",
}


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    used: int
    limit: int
    reason: str | None = None

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


async def _count_used(
    db: AsyncSession,
    student_id: uuid.UUID,
    challenge_key: str,
    policy: WindowPolicy,
    day: date,
) -> int:
    if policy is WindowPolicy.TRUST_PER_CHALLENGE:
        stmt = select(func.count()).select_from(ChallengeSubmission).where(
            ChallengeSubmission.student_id == student_id,
            ChallengeSubmission.challenge_key == challenge_key,
            ChallengeSubmission.proof_type == "TRUST",
            ChallengeSubmission.mode == "SOLO_TRUST",
            ChallengeSubmission.submitted_on == day,
        )
    elif policy is WindowPolicy.DAILY_QUIZ_ONCE:
        stmt = select(func.count()).select_from(ChallengeSubmission).where(
            ChallengeSubmission.student_id == student_id,
            ChallengeSubmission.mode == "QUIZ",
            ChallengeSubmission.submitted_on == day,
        )
    elif policy is WindowPolicy.PVP_PAIR_DAILY:
        # challenge_key is the other participant's id; settled duels count in either direction
        other_id = uuid.UUID(challenge_key)
        stmt = select(func.count()).select_from(ChallengeSubmission).where(
            ChallengeSubmission.mode == "PVP",
            ChallengeSubmission.status == "COMPLETED",
            ChallengeSubmission.submitted_on == day,
            or_(
                and_(ChallengeSubmission.student_id == student_id, ChallengeSubmission.opponent_id == other_id),
                and_(ChallengeSubmission.student_id == other_id, ChallengeSubmission.opponent_id == student_id),
            ),
        )
    elif policy is WindowPolicy.HABIT_ONCE:
        stmt = select(func.count()).select_from(HabitLog).where(
            HabitLog.student_id == student_id,
            HabitLog.habit_name == challenge_key,
            HabitLog.log_date == day,
        )
    elif policy is WindowPolicy.HABIT_XP_CAP:
        stmt = select(func.coalesce(func.sum(HabitLog.xp_awarded), 0)).where(
            HabitLog.student_id == student_id,
            HabitLog.log_date == day,
        )
    else:
        stmt = select(func.count()).select_from(FamilyLog).where(
            FamilyLog.student_id == student_id,
            FamilyLog.challenge_id == challenge_key,
            FamilyLog.log_date == day,
        )
    result = await db.execute(stmt)
    return int(result.scalar_one())


def _limit_for(policy: WindowPolicy) -> int:
    settings = get_settings()
    if policy is WindowPolicy.TRUST_PER_CHALLENGE:
        return settings.trust_per_challenge_limit
    if policy is WindowPolicy.HABIT_XP_CAP:
        return settings.daily_habit_xp_cap
    if policy is WindowPolicy.PVP_PAIR_DAILY:
        return settings.pvp_pair_daily_limit
    return 1


async def check_and_reserve(
    db: AsyncSession,
    student_id: uuid.UUID,
    challenge_key: str,
    policy: WindowPolicy,
    *,
    day: date | None = None,
) -> GuardDecision:
    """Decide whether the student may act under ``policy`` on ``day``.

    For HABIT_XP_CAP ``used``/``limit`` are XP amounts; for every other
    policy they are completion counts.
    """
    if day is None:
        day = utc_today()

    locked = await db.execute(
        select(Student.id).where(Student.id == student_id).with_for_update()
    )
    if locked.scalar_one_or_none() is None:
        raise NotFound("Student not found")

    used = await _count_used(db, student_id, challenge_key, policy, day)
    limit = _limit_for(policy)
    if used >= limit:
        return GuardDecision(allowed=False, used=used, limit=limit, reason=LIMIT_MESSAGES[policy])
    return GuardDecision(allowed=True, used=used, limit=limit)
