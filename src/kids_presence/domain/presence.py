"""Domain models for presence records."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from kids_presence.domain.children import Child, GuardianProfile


class PresenceStatus(Enum):
    """Stored status of a presence record."""

    PENDING = "pending"
    APPROVED = "approved"
    FINALIZED = "finalized"


ACTIVE_STATUSES = frozenset({PresenceStatus.PENDING, PresenceStatus.APPROVED})


class ApprovalIntent(Enum):
    """What approving a pending record means."""

    CHECKIN_APPROVAL = "checkin-approval"
    CHECKOUT_APPROVAL = "checkout-approval"


@dataclass(frozen=True)
class PresenceRecord:
    """One child's request/approval/release cycle."""

    id: UUID
    child_id: UUID
    session_id: UUID | None
    requested_by: UUID | None
    status: PresenceStatus
    requested_at: datetime
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    released_at: datetime | None = None
    released_by: UUID | None = None

    @property
    def is_active(self) -> bool:
        """Pending or approved records block new check-ins."""
        return self.status in ACTIVE_STATUSES

    @property
    def approval_intent(self) -> ApprovalIntent | None:
        """Return the approval this pending record is waiting for.

        A pending record that was approved before is a checkout request;
        anything else pending is a check-in request. Non-pending records
        wait for nothing.
        """
        if self.status is not PresenceStatus.PENDING:
            return None
        if self.approved_at is None:
            return ApprovalIntent.CHECKIN_APPROVAL
        return ApprovalIntent.CHECKOUT_APPROVAL


@dataclass(frozen=True)
class PendingRequest:
    """Pending record as shown to staff."""

    record: PresenceRecord
    intent: ApprovalIntent
    child: Child | None = None
    guardian: GuardianProfile | None = None

    @classmethod
    def from_record(
        cls,
        record: PresenceRecord,
        child: Child | None = None,
        guardian: GuardianProfile | None = None,
    ) -> "PendingRequest":
        """Build a pending request, deriving its intent once."""
        intent = record.approval_intent
        if intent is None:
            raise ValueError(f"Presence record {record.id} is not pending")
        return cls(record=record, intent=intent, child=child, guardian=guardian)


@dataclass(frozen=True)
class ChildPresence:
    """A child together with its current active record, if any."""

    child: Child
    record: PresenceRecord | None
