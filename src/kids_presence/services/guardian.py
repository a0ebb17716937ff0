"""Guardian-side check-in and checkout requests."""

import logging
from dataclasses import dataclass, field, replace
from uuid import UUID

from kids_presence.domain.errors import (
    ConflictError,
    DuplicateRecordError,
    RejectionReason,
    StaleWriteError,
    ValidationError,
)
from kids_presence.domain.presence import PresenceRecord, PresenceStatus
from kids_presence.domain.transitions import Action, Actor, PresenceState, transition
from kids_presence.services.children import ChildRepository
from kids_presence.services.events import EventBus, PresenceChanged
from kids_presence.services.presence import (
    InFlightGuard,
    PresenceRepository,
    retry_reads,
)
from kids_presence.services.sessions import SessionManager
from kids_presence.services.views import PresenceBoard

logger = logging.getLogger(__name__)


@dataclass
class GuardianRequestGateway:
    """Validates and submits a guardian's presence requests.

    A per-child in-flight marker collapses rapid duplicate submissions from
    this client into a single outcome.
    """

    repository: PresenceRepository
    children: ChildRepository
    session_manager: SessionManager
    events: EventBus
    refresh_delay_seconds: float = 1.2
    failure_delay_seconds: float = 0.5
    board: PresenceBoard = field(init=False)
    _in_flight: InFlightGuard = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._in_flight = InFlightGuard(RejectionReason.ALREADY_ACTIVE)
        self.board = PresenceBoard(
            loader=self.list_active,
            delay_seconds=self.refresh_delay_seconds,
            failure_delay_seconds=self.failure_delay_seconds,
        )

    @retry_reads
    async def list_active(self) -> list[PresenceRecord]:
        """Return every active presence record."""
        return await self.repository.list_active()

    async def request_checkin(
        self, child_id: UUID | None, guardian_id: UUID | None
    ) -> PresenceRecord:
        """Ask staff to let a child into the supervised area."""
        child_id, guardian_id = _require(child_id, guardian_id)
        with self._in_flight.hold(child_id):
            await self._check_owner(child_id, guardian_id)
            current = await self.repository.get_active_for_child(child_id)
            transition(
                current, Action.REQUEST_CHECKIN, Actor.guardian(guardian_id)
            ).raise_for_rejection()
            session_id = await self.session_manager.ensure_open_session()

            async def commit() -> PresenceRecord:
                try:
                    return await self.repository.create_pending(
                        child_id=child_id,
                        session_id=session_id,
                        guardian_id=guardian_id,
                    )
                except DuplicateRecordError as exc:
                    raise ConflictError(
                        RejectionReason.ALREADY_ACTIVE,
                        "A request is already in progress",
                    ) from exc

            record = await self.board.reconciler.run(
                commit, confirm=self.board.apply_record
            )
        logger.info("Check-in requested for child %s", child_id)
        self.events.publish(
            PresenceChanged(Action.REQUEST_CHECKIN, record, record.child_id)
        )
        return record

    async def request_checkout(
        self, child_id: UUID | None, guardian_id: UUID | None
    ) -> PresenceRecord:
        """Ask staff to release a child that is present."""
        child_id, guardian_id = _require(child_id, guardian_id)
        with self._in_flight.hold(child_id):
            await self._check_owner(child_id, guardian_id)
            current = await self.repository.get_active_for_child(child_id)
            transition(
                current, Action.REQUEST_CHECKOUT, Actor.guardian(guardian_id)
            ).raise_for_rejection()
            if current is None:
                raise ConflictError(RejectionReason.NOT_APPROVED)

            async def commit() -> PresenceRecord:
                updated = await self.repository.request_checkout(current.id)
                if updated is None:
                    raise StaleWriteError(
                        f"Presence record {current.id} is no longer approved"
                    )
                return updated

            pending = replace(current, status=PresenceStatus.PENDING)
            record = await self.board.reconciler.run(
                commit,
                optimistic=lambda: self.board.put(pending),
                confirm=self.board.apply_record,
            )
        logger.info("Checkout requested for child %s", child_id)
        self.events.publish(
            PresenceChanged(Action.REQUEST_CHECKOUT, record, record.child_id)
        )
        return record

    async def cancel_request(
        self, record_id: UUID | None, guardian_id: UUID | None
    ) -> PresenceRecord | None:
        """Withdraw a pending request made by ``guardian_id``.

        A pending check-in is deleted and the child is absent again. A pending
        checkout is reverted to approved so the check-in history survives;
        the reverted record is returned.
        """
        record_id, guardian_id = _require(record_id, guardian_id, "record")
        current = await self.repository.get_record(record_id)
        if current is None:
            raise StaleWriteError(f"Presence record {record_id} no longer exists")
        with self._in_flight.hold(current.child_id):
            outcome = transition(
                current, Action.CANCEL, Actor.guardian(guardian_id)
            ).raise_for_rejection()
            if outcome.target is PresenceState.ABSENT:
                result = await self.board.reconciler.run(
                    lambda: self._delete_checkin(current),
                    optimistic=lambda: self.board.discard(current.child_id),
                )
            else:
                restored = replace(current, status=PresenceStatus.APPROVED)
                result = await self.board.reconciler.run(
                    lambda: self._withdraw_checkout(current),
                    optimistic=lambda: self.board.put(restored),
                    confirm=self.board.apply_record,
                )
        logger.info("Request %s cancelled by guardian %s", record_id, guardian_id)
        self.events.publish(PresenceChanged(Action.CANCEL, result, current.child_id))
        return result

    async def _delete_checkin(self, record: PresenceRecord) -> None:
        if not await self.repository.delete_pending_checkin(record.id):
            raise StaleWriteError(
                f"Presence record {record.id} is no longer a pending check-in"
            )

    async def _withdraw_checkout(self, record: PresenceRecord) -> PresenceRecord:
        updated = await self.repository.withdraw_checkout(record.id)
        if updated is None:
            raise StaleWriteError(
                f"Presence record {record.id} is no longer a pending checkout"
            )
        return updated

    async def _check_owner(self, child_id: UUID, guardian_id: UUID) -> None:
        child = await self.children.get_child(child_id)
        if child is None:
            raise ValidationError(f"Unknown child {child_id}")
        if child.guardian_id != guardian_id:
            raise ConflictError(
                RejectionReason.NOT_OWNER, "Child belongs to another guardian"
            )


def _require(
    subject_id: UUID | None, guardian_id: UUID | None, subject: str = "child"
) -> tuple[UUID, UUID]:
    if subject_id is None:
        raise ValidationError(f"No {subject} selected")
    if guardian_id is None:
        raise ValidationError("Guardian is required")
    return subject_id, guardian_id
