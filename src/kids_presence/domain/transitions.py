"""Presence state machine.

Every gateway consults :func:`transition` before touching the record store so
that guardian and staff paths enforce the same rules. The module is pure: no
I/O, no clock, no shared state.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from kids_presence.domain.errors import ConflictError, RejectionReason
from kids_presence.domain.presence import PresenceRecord, PresenceStatus


class PresenceState(Enum):
    """Derived presence state of a single child."""

    ABSENT = "absent"
    PENDING_CHECKIN = "pending-checkin"
    PRESENT = "present"
    PENDING_CHECKOUT = "pending-checkout"
    FINALIZED = "finalized"


class Action(Enum):
    """Requested presence change."""

    REQUEST_CHECKIN = "request-checkin"
    REQUEST_CHECKOUT = "request-checkout"
    APPROVE = "approve"
    RELEASE = "release"
    CANCEL = "cancel"


class ActorRole(Enum):
    """Kind of account performing an action."""

    GUARDIAN = "guardian"
    STAFF = "staff"


@dataclass(frozen=True)
class Actor:
    """Account performing an action."""

    id: UUID
    role: ActorRole

    @classmethod
    def guardian(cls, actor_id: UUID) -> "Actor":
        return cls(id=actor_id, role=ActorRole.GUARDIAN)

    @classmethod
    def staff(cls, actor_id: UUID) -> "Actor":
        return cls(id=actor_id, role=ActorRole.STAFF)


@dataclass(frozen=True)
class Transition:
    """Outcome of a transition check: a target state or a rejection."""

    action: Action
    source: PresenceState
    target: PresenceState | None = None
    reason: RejectionReason | None = None

    @property
    def allowed(self) -> bool:
        return self.reason is None

    def raise_for_rejection(self) -> "Transition":
        """Raise ConflictError if the transition was rejected."""
        if self.reason is not None:
            raise ConflictError(
                self.reason,
                f"Cannot {self.action.value} while {self.source.value}: "
                f"{self.reason.value}",
            )
        return self


_GUARDIAN_ACTIONS = frozenset(
    {Action.REQUEST_CHECKIN, Action.REQUEST_CHECKOUT, Action.CANCEL}
)
_STAFF_ACTIONS = frozenset({Action.APPROVE, Action.RELEASE})


def state_of(record: PresenceRecord | None) -> PresenceState:
    """Derive the presence state represented by a record."""
    if record is None:
        return PresenceState.ABSENT
    if record.status is PresenceStatus.FINALIZED:
        return PresenceState.FINALIZED
    if record.status is PresenceStatus.APPROVED:
        return PresenceState.PRESENT
    if record.approved_at is None:
        return PresenceState.PENDING_CHECKIN
    return PresenceState.PENDING_CHECKOUT


def transition(  # noqa: PLR0911
    current: PresenceRecord | None, action: Action, actor: Actor
) -> Transition:
    """Decide whether ``actor`` may apply ``action`` to ``current``."""
    source = state_of(current)

    def reject(reason: RejectionReason) -> Transition:
        return Transition(action=action, source=source, reason=reason)

    def accept(target: PresenceState) -> Transition:
        return Transition(action=action, source=source, target=target)

    allowed_actions = (
        _GUARDIAN_ACTIONS if actor.role is ActorRole.GUARDIAN else _STAFF_ACTIONS
    )
    if action not in allowed_actions:
        return reject(RejectionReason.NOT_AUTHORIZED)

    if action is Action.REQUEST_CHECKIN:
        if source in {PresenceState.ABSENT, PresenceState.FINALIZED}:
            return accept(PresenceState.PENDING_CHECKIN)
        return reject(RejectionReason.ALREADY_ACTIVE)

    if action is Action.REQUEST_CHECKOUT:
        if source is PresenceState.PRESENT:
            return accept(PresenceState.PENDING_CHECKOUT)
        if source is PresenceState.PENDING_CHECKOUT:
            return reject(RejectionReason.ALREADY_ACTIVE)
        return reject(RejectionReason.NOT_APPROVED)

    if action is Action.APPROVE:
        if source is PresenceState.PENDING_CHECKIN:
            return accept(PresenceState.PRESENT)
        if source is PresenceState.PENDING_CHECKOUT:
            return accept(PresenceState.FINALIZED)
        return reject(RejectionReason.NOT_PENDING)

    if action is Action.RELEASE:
        if source is PresenceState.PENDING_CHECKOUT:
            return accept(PresenceState.FINALIZED)
        return reject(RejectionReason.NOT_PENDING)

    # Action.CANCEL
    if source not in {PresenceState.PENDING_CHECKIN, PresenceState.PENDING_CHECKOUT}:
        return reject(RejectionReason.NOT_PENDING)
    if current is None or current.requested_by != actor.id:
        return reject(RejectionReason.NOT_OWNER)
    if source is PresenceState.PENDING_CHECKIN:
        return accept(PresenceState.ABSENT)
    return accept(PresenceState.PRESENT)
