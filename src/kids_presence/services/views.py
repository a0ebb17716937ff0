"""Local views kept current by the realtime bridge.

Both views are keyed by child id. The bridge patches them from update events
and asks them to re-fetch on inserts and deletes; gateways mutate them
optimistically through their reconciler.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from kids_presence.domain.presence import PendingRequest, PresenceRecord
from kids_presence.services.reconcile import Reconciler, Undo


class LocalView(Protocol):
    """A client-side cache the realtime bridge can reconcile."""

    async def refresh(self) -> None:
        """Replace the cache with the store's current contents."""

    def apply_record(self, record: PresenceRecord) -> None:
        """Patch the cache with a record carried by an update event."""

    def request_refresh(self, delay_seconds: float | None = None) -> None:
        """Schedule a full re-fetch."""

    async def aclose(self) -> None:
        """Cancel background work."""


def _restore(entries: dict[UUID, object], child_id: UUID) -> Undo:
    previous = entries.get(child_id)

    def undo() -> None:
        if previous is None:
            entries.pop(child_id, None)
        else:
            entries[child_id] = previous

    return undo


@dataclass
class PresenceBoard(LocalView):
    """Active presence record per child, as seen by guardian clients."""

    loader: Callable[[], Awaitable[list[PresenceRecord]]]
    delay_seconds: float = 1.2
    failure_delay_seconds: float = 0.5
    records: dict[UUID, PresenceRecord] = field(default_factory=dict)
    loaded: bool = False
    reconciler: Reconciler = field(init=False)

    def __post_init__(self) -> None:
        self.reconciler = Reconciler(
            refresh=self.refresh,
            delay_seconds=self.delay_seconds,
            failure_delay_seconds=self.failure_delay_seconds,
        )

    async def refresh(self) -> None:
        records = await self.loader()
        self.records = {record.child_id: record for record in records}
        self.loaded = True

    def current(self, child_id: UUID) -> PresenceRecord | None:
        return self.records.get(child_id)

    def apply_record(self, record: PresenceRecord) -> None:
        if record.is_active:
            self.records[record.child_id] = record
            return
        existing = self.records.get(record.child_id)
        if existing is not None and existing.id == record.id:
            del self.records[record.child_id]

    def put(self, record: PresenceRecord) -> Undo:
        """Show ``record`` as the child's active record; return the undo."""
        undo = _restore(self.records, record.child_id)
        self.records[record.child_id] = record
        return undo

    def discard(self, child_id: UUID) -> Undo:
        """Clear the child's active record; return the undo."""
        undo = _restore(self.records, child_id)
        self.records.pop(child_id, None)
        return undo

    def request_refresh(self, delay_seconds: float | None = None) -> None:
        self.reconciler.schedule(delay_seconds)

    async def aclose(self) -> None:
        await self.reconciler.aclose()


@dataclass
class PendingBoard(LocalView):
    """Latest pending request per child, as seen by staff clients."""

    loader: Callable[[], Awaitable[list[PendingRequest]]]
    delay_seconds: float = 1.2
    failure_delay_seconds: float = 0.5
    requests: dict[UUID, PendingRequest] = field(default_factory=dict)
    loaded: bool = False
    reconciler: Reconciler = field(init=False)

    def __post_init__(self) -> None:
        self.reconciler = Reconciler(
            refresh=self.refresh,
            delay_seconds=self.delay_seconds,
            failure_delay_seconds=self.failure_delay_seconds,
        )

    async def refresh(self) -> None:
        pending = await self.loader()
        self.requests = {request.record.child_id: request for request in pending}
        self.loaded = True

    def snapshot(self) -> list[PendingRequest]:
        """Return pending requests, oldest request first."""
        return sorted(self.requests.values(), key=lambda item: item.record.requested_at)

    def apply_record(self, record: PresenceRecord) -> None:
        existing = self.requests.get(record.child_id)
        if record.approval_intent is None:
            if existing is not None and existing.record.id == record.id:
                del self.requests[record.child_id]
            return
        if existing is not None and existing.record.requested_at > record.requested_at:
            return
        child = existing.child if existing is not None else None
        guardian = existing.guardian if existing is not None else None
        self.requests[record.child_id] = PendingRequest.from_record(
            record, child=child, guardian=guardian
        )
        if child is None:
            # Update events carry no child or guardian details.
            self.request_refresh()

    def discard(self, record: PresenceRecord) -> Undo:
        """Hide the pending request for ``record``; return the undo."""
        existing = self.requests.get(record.child_id)
        if existing is None or existing.record.id != record.id:
            return lambda: None
        undo = _restore(self.requests, record.child_id)
        del self.requests[record.child_id]
        return undo

    def request_refresh(self, delay_seconds: float | None = None) -> None:
        self.reconciler.schedule(delay_seconds)

    async def aclose(self) -> None:
        await self.reconciler.aclose()
