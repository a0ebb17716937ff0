"""Shared persistence interface and guards for presence gateways."""

import logging
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol
from uuid import UUID

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from kids_presence.domain.errors import ConflictError, RejectionReason, TransportError
from kids_presence.domain.presence import PresenceRecord

logger = logging.getLogger(__name__)

# Read paths only; writes are never retried automatically.
retry_reads = retry(
    retry=retry_if_exception_type(TransportError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, max=2),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class PresenceRepository(Protocol):
    """Persistence interface for presence records.

    Every mutating method is conditional on the state the caller observed and
    returns ``None`` (or ``False``) when no row matched.
    """

    async def get_record(self, record_id: UUID) -> PresenceRecord | None:
        """Return a record by id, if present."""

    async def get_active_for_child(self, child_id: UUID) -> PresenceRecord | None:
        """Return the most recent pending or approved record for a child."""

    async def list_active(self) -> list[PresenceRecord]:
        """Return every pending or approved record."""

    async def list_pending(self) -> list[PresenceRecord]:
        """Return every pending record, oldest request first."""

    async def create_pending(
        self, child_id: UUID, session_id: UUID, guardian_id: UUID
    ) -> PresenceRecord:
        """Insert a pending check-in request and return it."""

    async def request_checkout(self, record_id: UUID) -> PresenceRecord | None:
        """Move an approved record back to pending."""

    async def approve_checkin(
        self, record_id: UUID, staff_id: UUID, approved_at: datetime
    ) -> PresenceRecord | None:
        """Approve a pending check-in request."""

    async def release(
        self, record_id: UUID, staff_id: UUID, released_at: datetime
    ) -> PresenceRecord | None:
        """Finalize a pending checkout request."""

    async def withdraw_checkout(self, record_id: UUID) -> PresenceRecord | None:
        """Return a pending checkout request to approved."""

    async def delete_pending_checkin(self, record_id: UUID) -> bool:
        """Delete a pending check-in request that was never approved."""


@dataclass
class InFlightGuard:
    """Client-local marker set for operations that must not overlap.

    This only collapses duplicate submissions from the same process; other
    devices are stopped by the store's conditional writes.
    """

    reason: RejectionReason
    _held: set[Hashable] = field(default_factory=set)

    def is_held(self, key: Hashable) -> bool:
        return key in self._held

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Mark ``key`` in flight, failing fast if it already is."""
        if key in self._held:
            raise ConflictError(self.reason, "A request is already in progress")
        self._held.add(key)
        try:
            yield
        finally:
            self._held.discard(key)
