"""ORM models for the gamification core.

Column types stay portable (generic ``Uuid``/``JSON``) so the same models
run against PostgreSQL in production and SQLite in the test-suite; JSON
columns become JSONB on PostgreSQL.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dojo.day_utils import utc_now
from dojo.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Clubs & Students
# ---------------------------------------------------------------------------


class Club(Base):
    """A martial-arts school. Students of one club form a cohort."""

    __tablename__ = "clubs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    art_type: Mapped[str] = mapped_column(String(100), nullable=False, default="Taekwondo")
    parent_premium_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    students: Mapped[list[Student]] = relationship("Student", back_populates="club")


class Student(Base):
    """A student. ``total_xp`` is the ledger's denormalized balance."""

    __tablename__ = "students"
    __table_args__ = (CheckConstraint("total_xp >= 0", name="ck_students_total_xp_nonneg"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    club_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    belt: Mapped[str] = mapped_column(String(50), nullable=False, default="white")
    stripes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    premium_status: Mapped[str] = mapped_column(String(20), nullable=False, default="none")
    parent_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    parent_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    club: Mapped[Club] = relationship("Club", back_populates="students")


# ---------------------------------------------------------------------------
# XP Ledger
# ---------------------------------------------------------------------------


class XPTransaction(Base):
    """Append-only ledger entry. ``amount`` is a magnitude; ``type`` gives the sign."""

    __tablename__ = "xp_transactions"
    __table_args__ = (
        Index("idx_xp_transactions_student_created", "student_id", "created_at"),
        CheckConstraint("amount > 0", name="ck_xp_transactions_amount_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(8), nullable=False)  # EARN | SPEND
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Daily Challenge cache
# ---------------------------------------------------------------------------


class DailyChallenge(Base):
    """One quiz per (date, belt). First writer wins."""

    __tablename__ = "daily_challenges"
    __table_args__ = (
        UniqueConstraint("date", "target_belt", name="uq_daily_challenges_date_belt"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    challenge_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    target_belt: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="quiz")
    quiz_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Challenge submissions (trust, video, quiz, pvp)
# ---------------------------------------------------------------------------


class ChallengeSubmission(Base):
    """A completion attempt. Mode-specific columns are nullable."""

    __tablename__ = "challenge_submissions"
    __table_args__ = (
        Index("idx_submissions_student_day", "student_id", "submitted_on", "mode"),
        Index("idx_submissions_club_status", "club_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    club_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False
    )
    challenge_key: Mapped[str] = mapped_column(String(100), nullable=False)
    daily_challenge_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("daily_challenges.id", ondelete="SET NULL"), nullable=True
    )
    mode: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    proof_type: Mapped[str] = mapped_column(String(8), nullable=False, default="TRUST")
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_correct: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # PvP
    opponent_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="SET NULL"), nullable=True
    )
    pvp_scores: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    winner_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    # Coach verification
    coach_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    submitted_on: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Home Dojo: habits & family challenges
# ---------------------------------------------------------------------------


class HabitLog(Base):
    """One row per (student, habit, day); its existence is the dedup signal."""

    __tablename__ = "habit_logs"
    __table_args__ = (
        UniqueConstraint("student_id", "habit_name", "log_date", name="uq_habit_logs_student_habit_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    habit_name: Mapped[str] = mapped_column(String(100), nullable=False)
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    log_date: Mapped[date] = mapped_column(Date, nullable=False)


class CustomHabit(Base):
    """Student-defined habit. Soft-deleted via ``is_active``."""

    __tablename__ = "custom_habits"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[str] = mapped_column(String(10), nullable=False, default="✨")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class FamilyLog(Base):
    __tablename__ = "family_logs"
    __table_args__ = (
        UniqueConstraint("student_id", "challenge_id", "log_date", name="uq_family_logs_student_challenge_day"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False
    )
    challenge_id: Mapped[str] = mapped_column(String(64), nullable=False)
    won: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    log_date: Mapped[date] = mapped_column(Date, nullable=False)
