"""Staff-side listing and approval of pending presence requests."""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from kids_presence.domain.errors import (
    RejectionReason,
    StaleWriteError,
    ValidationError,
)
from kids_presence.domain.presence import (
    ApprovalIntent,
    PendingRequest,
    PresenceRecord,
)
from kids_presence.domain.transitions import Action, Actor, transition
from kids_presence.services.children import ChildRepository, GuardianDirectory
from kids_presence.services.events import EventBus, PresenceChanged
from kids_presence.services.presence import (
    InFlightGuard,
    PresenceRepository,
    retry_reads,
)
from kids_presence.services.views import PendingBoard

logger = logging.getLogger(__name__)


def latest_per_child(records: list[PresenceRecord]) -> list[PresenceRecord]:
    """Keep only the most recent request per child.

    Older duplicates are hidden from staff, not deleted. The result is
    ordered by request time, oldest first.
    """
    latest: dict[UUID, PresenceRecord] = {}
    for record in records:
        existing = latest.get(record.child_id)
        if existing is None or record.requested_at > existing.requested_at:
            latest[record.child_id] = record
    return sorted(latest.values(), key=lambda record: record.requested_at)


@dataclass
class StaffApprovalGateway:
    """Lists pending requests and approves them on behalf of staff."""

    repository: PresenceRepository
    children: ChildRepository
    guardians: GuardianDirectory
    events: EventBus
    refresh_delay_seconds: float = 1.2
    failure_delay_seconds: float = 0.5
    board: PendingBoard = field(init=False)
    _in_flight: InFlightGuard = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._in_flight = InFlightGuard(RejectionReason.BUSY)
        self.board = PendingBoard(
            loader=self.list_pending,
            delay_seconds=self.refresh_delay_seconds,
            failure_delay_seconds=self.failure_delay_seconds,
        )

    @retry_reads
    async def list_pending(self) -> list[PendingRequest]:
        """Return the latest pending request per child with display details."""
        records = latest_per_child(await self.repository.list_pending())
        if not records:
            return []
        children = await self.children.get_children(
            list({record.child_id for record in records})
        )
        guardian_ids = {
            record.requested_by for record in records if record.requested_by
        }
        profiles = await self.guardians.get_profiles(list(guardian_ids))
        children_by_id = {child.id: child for child in children}
        profiles_by_id = {profile.id: profile for profile in profiles}
        return [
            PendingRequest.from_record(
                record,
                child=children_by_id.get(record.child_id),
                guardian=profiles_by_id.get(record.requested_by)
                if record.requested_by
                else None,
            )
            for record in records
        ]

    def is_processing(self, record_id: UUID) -> bool:
        return self._in_flight.is_held(record_id)

    async def approve(
        self, record_id: UUID | None, staff_id: UUID | None
    ) -> PresenceRecord:
        """Approve a pending check-in or release a pending checkout.

        A second call for the same record while the first is in flight fails
        with ``busy``. If another device wins the race the conditional store
        update matches nothing and ``StaleWriteError`` is raised.
        """
        if record_id is None:
            raise ValidationError("No request selected")
        if staff_id is None:
            raise ValidationError("Staff member is required")
        with self._in_flight.hold(record_id):
            current = await self.repository.get_record(record_id)
            if current is None:
                raise StaleWriteError(f"Presence record {record_id} no longer exists")
            intent = current.approval_intent
            action = (
                Action.RELEASE
                if intent is ApprovalIntent.CHECKOUT_APPROVAL
                else Action.APPROVE
            )
            transition(current, action, Actor.staff(staff_id)).raise_for_rejection()

            async def commit() -> PresenceRecord:
                now = datetime.now(tz=UTC)
                if intent is ApprovalIntent.CHECKIN_APPROVAL:
                    updated = await self.repository.approve_checkin(
                        current.id, staff_id, approved_at=now
                    )
                else:
                    updated = await self.repository.release(
                        current.id, staff_id, released_at=now
                    )
                if updated is None:
                    raise StaleWriteError(
                        f"Presence record {current.id} was changed by someone else"
                    )
                return updated

            record = await self.board.reconciler.run(
                commit, optimistic=lambda: self.board.discard(current)
            )
        logger.info(
            "Staff %s completed %s for record %s", staff_id, intent.value, record.id
        )
        self.events.publish(PresenceChanged(action, record, record.child_id))
        return record
