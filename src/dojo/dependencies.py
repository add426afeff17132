"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from dojo.daily.generator import BaseContentGenerator, get_content_generator
from dojo.notifications.dispatcher import NotificationDispatcher
from dojo.redis_client import get_redis_or_none


async def get_notifier() -> AsyncGenerator[NotificationDispatcher, None]:
    """Yield a notification dispatcher bound to the shared Redis client."""
    yield NotificationDispatcher(get_redis_or_none())


def get_generator() -> BaseContentGenerator:
    """Content generator selected by settings (overridden in tests)."""
    return get_content_generator()
