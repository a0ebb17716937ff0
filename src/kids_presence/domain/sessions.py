"""Domain models for attendance sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class SessionStatus(Enum):
    """Lifecycle of an attendance session."""

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class AttendanceSession:
    """Represents a persisted attendance window."""

    id: UUID
    name: str
    status: SessionStatus
    started_at: datetime
    ended_at: datetime | None = None
