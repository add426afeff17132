"""HS256 JWT verification for tokens issued by the school's identity service.

The identity service owns sign-in; this service only verifies tokens and
reads three claims: ``sub`` (user id), ``role`` and ``club_id``.
``create_access_token`` mints tokens for local development and tests.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from dojo.config import get_settings

ROLES = frozenset({"student", "coach", "parent"})


@dataclass(frozen=True)
class Actor:
    """The authenticated caller."""

    id: uuid.UUID
    role: str
    club_id: uuid.UUID | None = None

    @property
    def is_coach(self) -> bool:
        return self.role == "coach"


def create_access_token(
    user_id: uuid.UUID | str,
    role: str = "student",
    club_id: uuid.UUID | str | None = None,
    expires_minutes: int = 60,
) -> str:
    """
    Create a short-lived access token.

    Args:
        user_id: Student or coach id (``sub`` claim).
        role: One of ``student``, ``coach``, ``parent``.
        club_id: Club the caller belongs to, if any.
        expires_minutes: Lifetime of the token.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
        "iss": settings.jwt_issuer,
    }
    if club_id is not None:
        payload["club_id"] = str(club_id)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Actor:
    """
    Verify a JWT and return the Actor it names.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or its
            claims are malformed.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    role = payload.get("role", "student")
    if role not in ROLES:
        msg = f"Unknown role '{role}'"
        raise jwt.InvalidTokenError(msg)

    try:
        actor_id = uuid.UUID(str(payload["sub"]))
        club_id = uuid.UUID(str(payload["club_id"])) if payload.get("club_id") else None
    except ValueError as e:
        msg = "Malformed subject or club claim"
        raise jwt.InvalidTokenError(msg) from e

    return Actor(id=actor_id, role=role, club_id=club_id)
