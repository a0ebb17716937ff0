"""Validation for scanned check-in codes."""

from kids_presence.domain.errors import ValidationError

DEFAULT_SCAN_MARKER = "IBI_KIDS"


def validate_scan(payload: str | None, marker: str = DEFAULT_SCAN_MARKER) -> str:
    """Return the payload if it carries the supervised area's marker."""
    if not payload or marker not in payload:
        raise ValidationError("Scanned code is not a valid check-in code")
    return payload
