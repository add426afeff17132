"""Pydantic models for arena (solo and PvP) endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field


# --- Solo submissions ---


class TrustSubmitRequest(BaseModel):
    proof_type: Literal["TRUST"]
    student_id: str
    challenge_key: str = Field(..., min_length=1, max_length=100)
    score: int | None = Field(None, ge=0)


class VideoSubmitRequest(BaseModel):
    proof_type: Literal["VIDEO"]
    student_id: str
    challenge_key: str = Field(..., min_length=1, max_length=100)
    video_url: str = ""
    score: int | None = Field(None, ge=0)


SubmitChallengeRequest = Annotated[
    TrustSubmitRequest | VideoSubmitRequest,
    Field(discriminator="proof_type"),
]


class SubmitChallengeResponse(BaseModel):
    submission_id: str
    status: str
    xp_awarded: int
    new_total_xp: int
    remaining_for_challenge: int | None = None
    message: str = ""


class VerifyRequest(BaseModel):
    submission_id: str
    approve: bool
    notes: str | None = Field(None, max_length=2000)


class VerifyResponse(BaseModel):
    submission_id: str
    status: str
    xp_awarded: int
    new_total_xp: int


class PendingVerificationItem(BaseModel):
    id: str
    student_id: str
    student_name: str
    challenge_key: str
    challenge_name: str
    video_url: str | None = None
    score: int | None = None
    xp_pending: int
    created_at: datetime


class PendingVerificationResponse(BaseModel):
    submissions: list[PendingVerificationItem]


class ChallengeHistoryItem(BaseModel):
    id: str
    challenge_key: str
    name: str
    icon: str
    category: str
    mode: str
    status: str
    proof_type: str
    xp_awarded: int
    score: int | None = None
    created_at: datetime


class ChallengeHistoryResponse(BaseModel):
    history: list[ChallengeHistoryItem]


# --- PvP ---


class PvPCreateRequest(BaseModel):
    challenger_id: str
    opponent_id: str
    club_id: str
    challenge_key: str = Field(..., min_length=1, max_length=100)


class PvPRespondRequest(BaseModel):
    challenge_id: str
    student_id: str
    accept: bool


class PvPScoreRequest(BaseModel):
    challenge_id: str
    student_id: str
    score: int = Field(..., ge=0)


class PvPChallengeResponse(BaseModel):
    id: str
    challenger_id: str
    opponent_id: str
    challenge_key: str
    status: str
    created_at: datetime


class PvPScoreResponse(BaseModel):
    challenge_id: str
    status: str
    scores: dict[str, int] = {}
    winner_id: str | None = None
    xp_awarded: dict[str, int] = {}
    waiting_for: str | None = None


class PendingPvPItem(BaseModel):
    id: str
    challenger_id: str
    challenger_name: str
    challenge_key: str
    challenge_name: str
    created_at: datetime


class PendingPvPResponse(BaseModel):
    challenges: list[PendingPvPItem]
