"""Domain models for record store change events."""

from dataclasses import dataclass
from enum import Enum

from kids_presence.domain.presence import PresenceRecord


class ChangeType(Enum):
    """Kind of row change emitted by the store."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A single presence-table change.

    ``before`` and ``after`` are only present when the feed carried a complete
    row; delete events usually hold little more than the primary key.
    """

    type: ChangeType
    before: PresenceRecord | None = None
    after: PresenceRecord | None = None
