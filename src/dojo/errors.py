"""Domain error taxonomy.

Services raise these; ``middleware.error_handler`` maps them to JSON
responses. ``balance`` is echoed back on denials so the client can refresh
its XP display without another round-trip.
"""

from __future__ import annotations


class DojoError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, *, balance: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.balance = balance

    def to_dict(self) -> dict[str, object]:
        body: dict[str, object] = {"detail": self.message, "code": self.code}
        if self.balance is not None:
            body["balance"] = self.balance
        return body


class ValidationError(DojoError):
    """Malformed or missing input, rejected before any side effect."""

    status_code = 400
    code = "validation_error"


class PermissionDenied(DojoError):
    """The acting identity may not perform this operation."""

    status_code = 403
    code = "permission_denied"


class EntitlementDenied(DojoError):
    """Premium-only path used without a premium entitlement."""

    status_code = 403
    code = "entitlement_denied"


class NotFound(DojoError):
    status_code = 404
    code = "not_found"


class InvalidState(DojoError):
    """Acting on a submission or match in a terminal or incompatible state."""

    status_code = 409
    code = "invalid_state"


class InsufficientXP(InvalidState):
    code = "insufficient_xp"


class RateLimited(DojoError):
    """Daily or per-challenge ceiling already reached."""

    status_code = 429
    code = "rate_limited"


class UpstreamUnavailable(DojoError):
    """Content generator or notification channel failed."""

    status_code = 503
    code = "upstream_unavailable"
