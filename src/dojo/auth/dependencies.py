"""FastAPI authentication dependencies."""

from __future__ import annotations

import uuid

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from dojo.auth.jwt import Actor, verify_token
from dojo.db.models import Student
from dojo.errors import NotFound, PermissionDenied

_bearer = HTTPBearer()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> Actor:
    """
    Extract and verify the bearer JWT, return the Actor.

    Raises 401 on a missing, expired, or malformed token.
    """
    try:
        return verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e


async def require_coach(actor: Actor = Depends(get_current_actor)) -> Actor:
    """Same as get_current_actor but only lets coaches through."""
    if not actor.is_coach:
        raise PermissionDenied("Coach role required")
    return actor


def ensure_club_access(actor: Actor, club_id: uuid.UUID) -> None:
    """Scope an actor to the club named in its token.

    A coach token must carry a club; other tokens without one are not
    club-scoped.
    """
    if actor.is_coach and actor.club_id is None:
        raise PermissionDenied("Coach token is not bound to a club")
    if actor.club_id is not None and actor.club_id != club_id:
        raise PermissionDenied("You can only act within your own club")


async def ensure_self_or_coach(db: AsyncSession, actor: Actor, student_id: uuid.UUID) -> None:
    """Students and parents act on their own id, coaches on students of their club."""
    if not actor.is_coach:
        if actor.id != student_id:
            raise PermissionDenied("You can only act on your own account")
        return
    if actor.club_id is None:
        raise PermissionDenied("Coach token is not bound to a club")
    student = await db.get(Student, student_id)
    if student is None:
        raise NotFound("Student not found")
    ensure_club_access(actor, student.club_id)
