"""Shared test fixtures."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from kids_presence.config import Settings
from kids_presence.containers import AppContainer, assemble_container
from kids_presence.domain.changes import ChangeEvent, ChangeType
from kids_presence.domain.children import Child, GuardianProfile
from kids_presence.domain.errors import DuplicateRecordError
from kids_presence.domain.presence import PresenceRecord, PresenceStatus
from kids_presence.domain.sessions import AttendanceSession, SessionStatus
from kids_presence.services.children import ChildRepository, GuardianDirectory
from kids_presence.services.presence import PresenceRepository
from kids_presence.services.sessions import SessionRepository
from kids_presence.services.sync import ChangeFeed


def make_record(  # noqa: PLR0913
    child_id: UUID,
    guardian_id: UUID,
    status: PresenceStatus = PresenceStatus.PENDING,
    *,
    approved: bool = False,
    requested_at: datetime | None = None,
    session_id: UUID | None = None,
) -> PresenceRecord:
    """Build a presence record; ``approved`` stamps a past approval."""
    requested_at = requested_at or datetime.now(tz=UTC) - timedelta(minutes=5)
    return PresenceRecord(
        id=uuid4(),
        child_id=child_id,
        session_id=session_id or uuid4(),
        requested_by=guardian_id,
        status=status,
        requested_at=requested_at,
        approved_by=uuid4() if approved else None,
        approved_at=requested_at + timedelta(minutes=1) if approved else None,
    )


@dataclass
class FakeChangeFeed(ChangeFeed):
    """Change feed fed by the in-memory repository."""

    subscribed: bool = False
    closed: bool = False
    _queue: asyncio.Queue = field(default_factory=asyncio.Queue)

    async def subscribe(self) -> None:
        self.subscribed = True

    def push(self, event: ChangeEvent) -> None:
        if self.subscribed and not self.closed:
            self._queue.put_nowait(event)

    async def events(self) -> AsyncIterator[ChangeEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        self.closed = True
        self._queue.put_nowait(None)


@dataclass
class InMemoryPresenceRepository(PresenceRepository):
    """In-memory presence store with conditional writes.

    Every call yields to the event loop once, like a network round-trip.
    ``enforce_unique`` mimics the partial unique index on active records.
    """

    records: dict[UUID, PresenceRecord] = field(default_factory=dict)
    feed: FakeChangeFeed | None = None
    enforce_unique: bool = True
    failures: dict[str, list[Exception]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    _tick: int = 0

    def add(self, record: PresenceRecord) -> PresenceRecord:
        self.records[record.id] = record
        return record

    def active_for(self, child_id: UUID) -> list[PresenceRecord]:
        return [
            record
            for record in self.records.values()
            if record.child_id == child_id and record.is_active
        ]

    def fail_next(self, method: str, error: Exception) -> None:
        self.failures.setdefault(method, []).append(error)

    async def _enter(self, method: str) -> None:
        self.calls.append(method)
        await asyncio.sleep(0)
        pending = self.failures.get(method)
        if pending:
            raise pending.pop(0)

    def _now(self) -> datetime:
        self._tick += 1
        return datetime.now(tz=UTC) + timedelta(microseconds=self._tick)

    def _emit(
        self,
        change_type: ChangeType,
        before: PresenceRecord | None = None,
        after: PresenceRecord | None = None,
    ) -> None:
        if self.feed is not None:
            self.feed.push(ChangeEvent(type=change_type, before=before, after=after))

    def _update(self, record: PresenceRecord, **changes: object) -> PresenceRecord:
        updated = replace(record, **changes)
        self.records[record.id] = updated
        self._emit(ChangeType.UPDATE, before=record, after=updated)
        return updated

    async def get_record(self, record_id: UUID) -> PresenceRecord | None:
        await self._enter("get_record")
        return self.records.get(record_id)

    async def get_active_for_child(self, child_id: UUID) -> PresenceRecord | None:
        await self._enter("get_active_for_child")
        active = sorted(self.active_for(child_id), key=lambda r: r.requested_at)
        return active[-1] if active else None

    async def list_active(self) -> list[PresenceRecord]:
        await self._enter("list_active")
        return sorted(
            (record for record in self.records.values() if record.is_active),
            key=lambda r: r.requested_at,
        )

    async def list_pending(self) -> list[PresenceRecord]:
        await self._enter("list_pending")
        return sorted(
            (
                record
                for record in self.records.values()
                if record.status is PresenceStatus.PENDING
            ),
            key=lambda r: r.requested_at,
        )

    async def create_pending(
        self, child_id: UUID, session_id: UUID, guardian_id: UUID
    ) -> PresenceRecord:
        await self._enter("create_pending")
        if self.enforce_unique and self.active_for(child_id):
            raise DuplicateRecordError("kids_checkins_one_active_per_kid")
        record = self.add(
            PresenceRecord(
                id=uuid4(),
                child_id=child_id,
                session_id=session_id,
                requested_by=guardian_id,
                status=PresenceStatus.PENDING,
                requested_at=self._now(),
            )
        )
        self._emit(ChangeType.INSERT, after=record)
        return record

    async def request_checkout(self, record_id: UUID) -> PresenceRecord | None:
        await self._enter("request_checkout")
        record = self.records.get(record_id)
        if record is None or record.status is not PresenceStatus.APPROVED:
            return None
        return self._update(record, status=PresenceStatus.PENDING)

    async def approve_checkin(
        self, record_id: UUID, staff_id: UUID, approved_at: datetime
    ) -> PresenceRecord | None:
        await self._enter("approve_checkin")
        record = self.records.get(record_id)
        if (
            record is None
            or record.status is not PresenceStatus.PENDING
            or record.approved_at is not None
        ):
            return None
        return self._update(
            record,
            status=PresenceStatus.APPROVED,
            approved_by=staff_id,
            approved_at=approved_at,
        )

    async def release(
        self, record_id: UUID, staff_id: UUID, released_at: datetime
    ) -> PresenceRecord | None:
        await self._enter("release")
        record = self.records.get(record_id)
        if (
            record is None
            or record.status is not PresenceStatus.PENDING
            or record.approved_at is None
        ):
            return None
        return self._update(
            record,
            status=PresenceStatus.FINALIZED,
            released_by=staff_id,
            released_at=released_at,
        )

    async def withdraw_checkout(self, record_id: UUID) -> PresenceRecord | None:
        await self._enter("withdraw_checkout")
        record = self.records.get(record_id)
        if (
            record is None
            or record.status is not PresenceStatus.PENDING
            or record.approved_at is None
        ):
            return None
        return self._update(record, status=PresenceStatus.APPROVED)

    async def delete_pending_checkin(self, record_id: UUID) -> bool:
        await self._enter("delete_pending_checkin")
        record = self.records.get(record_id)
        if (
            record is None
            or record.status is not PresenceStatus.PENDING
            or record.approved_at is not None
        ):
            return False
        del self.records[record_id]
        self._emit(ChangeType.DELETE)
        return True


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[UUID, AttendanceSession] = field(default_factory=dict)
    created: list[UUID] = field(default_factory=list)
    enforce_unique_day: bool = False

    async def list_open_sessions(
        self, starts_from: datetime, starts_before: datetime
    ) -> list[AttendanceSession]:
        await asyncio.sleep(0)
        return sorted(
            (
                session
                for session in self.sessions.values()
                if session.status is SessionStatus.OPEN
                and starts_from <= session.started_at < starts_before
            ),
            key=lambda s: (s.started_at, str(s.id)),
        )

    async def create_session(
        self, name: str, started_at: datetime
    ) -> AttendanceSession:
        await asyncio.sleep(0)
        utc_day = started_at.astimezone(UTC).date()
        if self.enforce_unique_day and any(
            other.status is SessionStatus.OPEN
            and other.started_at.astimezone(UTC).date() == utc_day
            for other in self.sessions.values()
        ):
            raise DuplicateRecordError("kids_sessoes_one_open_per_day")
        session = AttendanceSession(
            id=uuid4(), name=name, status=SessionStatus.OPEN, started_at=started_at
        )
        self.sessions[session.id] = session
        self.created.append(session.id)
        return session

    async def close_session(
        self, session_id: UUID, ended_at: datetime
    ) -> AttendanceSession | None:
        await asyncio.sleep(0)
        session = self.sessions.get(session_id)
        if session is None or session.status is not SessionStatus.OPEN:
            return None
        closed = replace(session, status=SessionStatus.CLOSED, ended_at=ended_at)
        self.sessions[session_id] = closed
        return closed


@dataclass
class InMemoryChildRepository(ChildRepository):
    """In-memory child repository for tests."""

    children: dict[UUID, Child] = field(default_factory=dict)

    def add(self, guardian_id: UUID, full_name: str) -> Child:
        child = Child(id=uuid4(), guardian_id=guardian_id, full_name=full_name)
        self.children[child.id] = child
        return child

    async def get_child(self, child_id: UUID) -> Child | None:
        return self.children.get(child_id)

    async def list_for_guardian(self, guardian_id: UUID) -> list[Child]:
        return sorted(
            (c for c in self.children.values() if c.guardian_id == guardian_id),
            key=lambda c: c.full_name,
        )

    async def get_children(self, child_ids: list[UUID]) -> list[Child]:
        return [self.children[i] for i in child_ids if i in self.children]

    async def create_child(  # noqa: PLR0913
        self,
        guardian_id: UUID,
        full_name: str,
        birthday: date | None,
        notes: str | None,
        photo_url: str | None,
    ) -> Child:
        child = Child(
            id=uuid4(),
            guardian_id=guardian_id,
            full_name=full_name,
            birthday=birthday,
            notes=notes,
            photo_url=photo_url,
        )
        self.children[child.id] = child
        return child

    async def update_child(
        self, child_id: UUID, fields: dict[str, object]
    ) -> Child | None:
        child = self.children.get(child_id)
        if child is None:
            return None
        updated = replace(child, **fields)
        self.children[child_id] = updated
        return updated

    async def delete_child(self, child_id: UUID) -> bool:
        return self.children.pop(child_id, None) is not None


@dataclass
class InMemoryGuardianDirectory(GuardianDirectory):
    """In-memory guardian profiles for tests."""

    profiles: dict[UUID, GuardianProfile] = field(default_factory=dict)

    def add(self, full_name: str, nickname: str | None = None) -> GuardianProfile:
        profile = GuardianProfile(id=uuid4(), full_name=full_name, nickname=nickname)
        self.profiles[profile.id] = profile
        return profile

    async def get_profiles(self, guardian_ids: list[UUID]) -> list[GuardianProfile]:
        return [self.profiles[i] for i in guardian_ids if i in self.profiles]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        staff_token="staff-token",
        reconcile_delay_seconds=0.01,
        failure_reconcile_delay_seconds=0.01,
        feed_refresh_delay_seconds=0.01,
    )


@pytest.fixture
def change_feed() -> FakeChangeFeed:
    return FakeChangeFeed()


@pytest.fixture
def presence_repository(change_feed: FakeChangeFeed) -> InMemoryPresenceRepository:
    return InMemoryPresenceRepository(feed=change_feed)


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def child_repository() -> InMemoryChildRepository:
    return InMemoryChildRepository()


@pytest.fixture
def guardian_directory() -> InMemoryGuardianDirectory:
    return InMemoryGuardianDirectory()


@pytest.fixture
def guardian(guardian_directory: InMemoryGuardianDirectory) -> GuardianProfile:
    return guardian_directory.add("Maria Souza", nickname="Maria")


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    presence_repository: InMemoryPresenceRepository,
    session_repository: InMemorySessionRepository,
    child_repository: InMemoryChildRepository,
    guardian_directory: InMemoryGuardianDirectory,
    change_feed: FakeChangeFeed,
) -> AppContainer:
    return assemble_container(
        settings,
        presence_repository=presence_repository,
        session_repository=session_repository,
        child_repository=child_repository,
        guardian_directory=guardian_directory,
        change_feed=change_feed,
    )
