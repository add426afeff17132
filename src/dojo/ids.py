"""Identifier validation for anything that reaches the store."""

from __future__ import annotations

import uuid

from dojo.errors import ValidationError


def parse_uuid(value: object, field: str = "id") -> uuid.UUID:
    """Parse a canonical UUID string. Raises ValidationError, never coerces."""
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required")
    try:
        parsed = uuid.UUID(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {field} format") from e
    # uuid.UUID also accepts braces/urn/hex-only forms; require the dashed form
    if str(parsed) != value.lower():
        raise ValidationError(f"Invalid {field} format")
    return parsed


def is_uuid(value: object) -> bool:
    """True when ``value`` is a well-formed dashed UUID string."""
    try:
        parse_uuid(value)
    except ValidationError:
        return False
    return True
