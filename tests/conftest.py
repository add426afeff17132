"""Shared test fixtures.

Every test gets its own SQLite file database with the schema created from
the ORM metadata, so no PostgreSQL or Redis server is needed. Redis stays
uninitialized: the request throttle lets traffic through and notifications
go to a recording dispatcher.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dojo.auth.jwt import create_access_token
from dojo.config import get_settings
from dojo.daily.generator import BaseContentGenerator, GeneratedQuiz
from dojo.database import close_db, get_engine, get_session_factory, init_db
from dojo.day_utils import utc_now
from dojo.db.base import Base
from dojo.db.models import Club, Student
from dojo.dependencies import get_generator, get_notifier
from dojo.errors import UpstreamUnavailable
from dojo.gamification.xp_service import get_balance
from dojo.main import create_app
from dojo.notifications.dispatcher import NotificationDispatcher


class RecordingNotifier(NotificationDispatcher):
    """Dispatcher that records instead of publishing."""

    def __init__(self) -> None:
        super().__init__(None)
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def dispatch(self, recipient: str, kind: str, payload: dict[str, Any]) -> bool:
        self.sent.append((recipient, kind, payload))
        return True

    def kinds(self) -> list[str]:
        return [k for _, k, _ in self.sent]


class FakeGenerator(BaseContentGenerator):
    """Deterministic generator; flip ``fail`` to simulate an outage."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def generate(self, belt: str, art_type: str) -> GeneratedQuiz:
        self.calls.append((belt, art_type))
        if self.fail:
            raise UpstreamUnavailable("generator down")
        return GeneratedQuiz(
            title=f"{belt.title()} Belt Brain Teaser",
            description="Show what you know!",
            question="How many tenets of Taekwondo are there?",
            options=["3", "5", "7", "10"],
            correct_index=1,
            explanation="Courtesy, integrity, perseverance, self-control, indomitable spirit.",
        )


@pytest.fixture(autouse=True)
def _fresh_settings() -> None:
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh SQLite database with the full schema."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'dojo.db'}")
    eng = get_engine()
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await close_db()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for calling services."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def club(session_factory) -> Club:
    """The default (oldest) club."""
    async with session_factory() as s:
        c = Club(name="Iron Tiger Dojo", art_type="Taekwondo", created_at=utc_now())
        s.add(c)
        await s.commit()
        return c


@pytest.fixture
def make_student(session_factory, club) -> Callable[..., Any]:
    """Factory: ``await make_student(name=..., total_xp=..., premium_status=..., in_club=...)``."""

    async def _make(
        name: str = "Student",
        total_xp: int = 0,
        premium_status: str = "none",
        belt: str = "white",
        in_club: Club | None = None,
    ) -> Student:
        async with session_factory() as s:
            st = Student(
                club_id=(in_club or club).id,
                name=name,
                belt=belt,
                total_xp=total_xp,
                premium_status=premium_status,
                created_at=utc_now(),
            )
            s.add(st)
            await s.commit()
            return st

    return _make


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest_asyncio.fixture
async def client(engine, notifier, generator) -> AsyncGenerator[AsyncClient, None]:
    """An async HTTP test client against the app, DB already initialized."""
    app = create_app()
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_generator] = lambda: generator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_header() -> Callable[..., dict[str, str]]:
    """``auth_header(user_id, role="student", club_id=None)`` -> Bearer header."""

    def _header(user_id, role: str = "student", club_id=None) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role, club_id)}"}

    return _header


@pytest.fixture
def balance_of(session_factory) -> Callable[..., Any]:
    """``await balance_of(student_id)``, read through a fresh session."""

    async def _balance(student_id) -> int:
        async with session_factory() as s:
            return await get_balance(s, student_id)

    return _balance
