"""Pydantic models for Home Dojo endpoints (habits and family challenges)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Habits ---


class HabitCheckRequest(BaseModel):
    student_id: str
    habit_name: str = Field(..., min_length=1, max_length=100)


class HabitCheckResponse(BaseModel):
    habit_name: str
    xp_awarded: int
    new_total_xp: int
    daily_xp_earned: int
    daily_xp_cap: int
    at_daily_limit: bool
    message: str


class HabitStatusResponse(BaseModel):
    completed_habits: list[str]
    daily_xp_earned: int
    daily_xp_cap: int
    total_xp: int
    streak: int


class CustomHabitCreateRequest(BaseModel):
    student_id: str
    title: str = Field(..., min_length=1, max_length=500)
    icon: str | None = None


class CustomHabitResponse(BaseModel):
    id: str
    title: str
    icon: str
    is_active: bool
    created_at: datetime | None = None


class CustomHabitListResponse(BaseModel):
    habits: list[CustomHabitResponse]


# --- Family challenges ---


class FamilySubmitRequest(BaseModel):
    student_id: str
    challenge_id: str = Field(..., min_length=1, max_length=64)
    won: bool = False


class FamilySubmitResponse(BaseModel):
    challenge_id: str
    xp_awarded: int
    new_total_xp: int
    won: bool
    message: str


class FamilyCompletion(BaseModel):
    challenge_id: str
    xp_awarded: int
    won: bool


class FamilyStatusResponse(BaseModel):
    completed: list[FamilyCompletion]
    total_xp_today: int
