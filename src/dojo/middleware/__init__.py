"""HTTP middleware stack for the dojo API."""

from fastapi import FastAPI

from dojo.config import Settings
from dojo.middleware.cors import setup_cors
from dojo.middleware.error_handler import setup_error_handlers
from dojo.middleware.logging import setup_logging
from dojo.middleware.rate_limit import RateLimitMiddleware
from dojo.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Wire logging, domain error mapping and the middleware stack.

    Outermost first: CORS, request id, HTTP throttle. Starlette runs the
    last-added middleware outermost, so a throttled 429 still gets CORS
    headers and an ``X-Request-Id``.

    The throttle is only flood protection. It is left out entirely when
    ``rate_limit_requests`` is 0 and passes traffic through while Redis is
    down; the daily XP limits in ``dojo.gamification.guard`` apply either way.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    if settings.rate_limit_requests > 0:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
