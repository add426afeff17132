"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from dojo.arena.router import router as arena_router
from dojo.competition.router import router as leaderboard_router
from dojo.config import get_settings
from dojo.daily.router import router as daily_router
from dojo.database import close_db, init_db
from dojo.gamification.router import router as xp_router
from dojo.health.router import router as health_router
from dojo.home.router import router as home_router
from dojo.middleware import setup_middleware
from dojo.redis_client import close_redis, init_redis


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Dojo Gamification API",
        description="XP ledger and challenge engine for martial-arts schools",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(xp_router)
    app.include_router(daily_router)
    app.include_router(arena_router)
    app.include_router(home_router)
    app.include_router(leaderboard_router)

    return app


app = create_app()
