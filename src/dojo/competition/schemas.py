"""Pydantic response models for the club leaderboard."""

from __future__ import annotations

from pydantic import BaseModel


class LeaderboardEntryResponse(BaseModel):
    rank: int
    student_id: str
    name: str
    belt: str
    stripes: int = 0
    total_xp: int
    monthly_xp: int = 0


class LeaderboardResponse(BaseModel):
    club_id: str
    entries: list[LeaderboardEntryResponse]
    total: int
