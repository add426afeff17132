"""Fire-and-forget notifications over Redis pub/sub.

Coaches and parents subscribe (via the delivery service, out of scope here)
to ``notify:{recipient}``. Publishing never raises: a failed notification
is logged and the award path that triggered it carries on.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from dojo.day_utils import utc_now

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Publish notification payloads for coaches, parents and students."""

    def __init__(self, redis: Any | None) -> None:  # noqa: ANN401
        self.redis = redis

    async def dispatch(self, recipient: str, kind: str, payload: dict[str, Any]) -> bool:
        """Publish to ``notify:{recipient}``. Returns False on any failure."""
        if self.redis is None:
            return False

        message = {
            "event": "notification",
            "kind": kind,
            "data": payload,
            "timestamp": utc_now().isoformat(),
        }
        try:
            await self.redis.publish(f"notify:{recipient}", json.dumps(message, default=str))
        except Exception:
            logger.warning("Failed to dispatch %s notification to %s", kind, recipient, exc_info=True)
            return False
        return True
