"""Pydantic models for the daily mystery challenge endpoints."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class QuizData(BaseModel):
    question: str
    options: list[str]
    correctIndex: int  # noqa: N815
    explanation: str = ""


class DailyChallengeResponse(BaseModel):
    id: str
    title: str
    description: str
    xp_reward: int
    type: str = "quiz"
    target_belt: str
    date: date
    source: str
    quiz_data: QuizData | None = None
    completed: bool = False
    xp_awarded: int | None = None
    is_correct: bool | None = None


class DailyAnswerRequest(BaseModel):
    student_id: str
    challenge_id: str = Field(..., min_length=1, max_length=64)
    selected_index: int = Field(..., ge=0)
    # Only consulted for fallback quizzes, which have no stored answer key
    is_correct: bool | None = None
    xp_reward: int | None = None


class DailyAnswerResponse(BaseModel):
    is_correct: bool
    xp_awarded: int
    new_total_xp: int
    explanation: str | None = None
