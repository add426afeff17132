"""Leaderboard API endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.dependencies import ensure_club_access, get_current_actor
from dojo.auth.jwt import Actor
from dojo.competition.leaderboard_service import get_leaderboard
from dojo.competition.schemas import LeaderboardEntryResponse, LeaderboardResponse
from dojo.database import get_session
from dojo.errors import ValidationError
from dojo.ids import parse_uuid

router = APIRouter(prefix="/api/v1", tags=["Leaderboard"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_club_leaderboard(
    club_id: str | None = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_session),
):
    """Club leaderboard ranked by all-time XP, with this month's XP."""
    if club_id:
        cid = parse_uuid(club_id, "club_id")
    elif actor.club_id is not None:
        cid = actor.club_id
    else:
        raise ValidationError("club_id is required")
    ensure_club_access(actor, cid)

    ranked = await get_leaderboard(db, cid)
    return LeaderboardResponse(
        club_id=str(cid),
        entries=[
            LeaderboardEntryResponse(
                rank=e["rank"],
                student_id=str(e["student_id"]),
                name=e["name"],
                belt=e["belt"],
                stripes=e["stripes"],
                total_xp=e["total_xp"],
                monthly_xp=e["monthly_xp"],
            )
            for e in ranked
        ],
        total=len(ranked),
    )
