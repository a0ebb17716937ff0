"""Error taxonomy for presence coordination."""

from enum import Enum


class RejectionReason(Enum):
    """Why a requested presence change was refused."""

    ALREADY_ACTIVE = "already-active"
    NOT_APPROVED = "not-approved"
    NOT_PENDING = "not-pending"
    NOT_OWNER = "not-owner"
    NOT_AUTHORIZED = "not-authorized"
    BUSY = "busy"


class PresenceError(Exception):
    """Base class for every failure surfaced by the core."""

    code = "error"


class ValidationError(PresenceError):
    """Input rejected before any store call."""

    code = "validation"


class ConflictError(PresenceError):
    """Change refused by the state machine or an in-flight guard."""

    code = "conflict"

    def __init__(self, reason: RejectionReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or reason.value)


class StaleWriteError(PresenceError):
    """Store write matched no rows; local state was out of date."""

    code = "stale"


class TransportError(PresenceError):
    """Record store or change feed could not be reached."""

    code = "transport"


class DuplicateRecordError(PresenceError):
    """Store refused an insert because of a uniqueness constraint."""

    code = "duplicate"
