"""Pydantic request/response models for the XP ledger endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Requests ---


class AwardXPRequest(BaseModel):
    student_id: str
    amount: int
    reason: str = Field("coach_bonus", max_length=255)


class SpendXPRequest(BaseModel):
    student_id: str
    amount: int
    reason: str = Field(..., min_length=1, max_length=255)


# --- Responses ---


class XPBalanceResponse(BaseModel):
    student_id: str
    total_xp: int


class XPHistoryEntry(BaseModel):
    amount: int
    type: str
    reason: str
    details: dict = {}
    created_at: datetime | None = None


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int
