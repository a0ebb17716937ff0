"""Tests for attendance session management."""

import asyncio
from datetime import UTC, date, datetime, timedelta
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from kids_presence.domain.errors import DuplicateRecordError, StaleWriteError
from kids_presence.domain.sessions import AttendanceSession, SessionStatus
from kids_presence.services.sessions import SessionManager
from tests.conftest import InMemorySessionRepository

DAY = date(2026, 10, 18)


def open_session(started_at: datetime) -> AttendanceSession:
    return AttendanceSession(
        id=uuid4(), name="Culto", status=SessionStatus.OPEN, started_at=started_at
    )


def test_creates_named_session_when_none_is_open() -> None:
    repository = InMemorySessionRepository()
    manager = SessionManager(repository)

    session_id = asyncio.run(manager.ensure_open_session(DAY))

    session = repository.sessions[session_id]
    assert session.status is SessionStatus.OPEN
    assert session.name == "Sessão Geral - 18/10/2026"
    assert session.started_at.date() == DAY


def test_reuses_existing_open_session() -> None:
    repository = InMemorySessionRepository()
    existing = open_session(datetime(2026, 10, 18, 9, tzinfo=UTC))
    repository.sessions[existing.id] = existing
    manager = SessionManager(repository)

    assert asyncio.run(manager.ensure_open_session(DAY)) == existing.id
    assert repository.created == []


def test_ignores_sessions_from_other_days_and_closed_sessions() -> None:
    repository = InMemorySessionRepository()
    yesterday = open_session(datetime(2026, 10, 17, 9, tzinfo=UTC))
    closed = AttendanceSession(
        id=uuid4(),
        name="Closed",
        status=SessionStatus.CLOSED,
        started_at=datetime(2026, 10, 18, 8, tzinfo=UTC),
        ended_at=datetime(2026, 10, 18, 10, tzinfo=UTC),
    )
    repository.sessions[yesterday.id] = yesterday
    repository.sessions[closed.id] = closed
    manager = SessionManager(repository)

    session_id = asyncio.run(manager.ensure_open_session(DAY))

    assert session_id not in {yesterday.id, closed.id}
    assert repository.created == [session_id]


def test_concurrent_calls_share_one_session() -> None:
    repository = InMemorySessionRepository()
    manager = SessionManager(repository)

    async def scenario() -> list:
        return await asyncio.gather(
            *(manager.ensure_open_session(DAY) for _ in range(5))
        )

    ids = asyncio.run(scenario())

    assert len(set(ids)) == 1
    assert len(repository.created) == 1


def test_racing_managers_converge_on_earliest_session() -> None:
    repository = InMemorySessionRepository()
    first = SessionManager(repository)
    second = SessionManager(repository)

    async def scenario() -> list:
        return await asyncio.gather(
            first.ensure_open_session(DAY), second.ensure_open_session(DAY)
        )

    ids = asyncio.run(scenario())

    open_ids = [
        session.id
        for session in repository.sessions.values()
        if session.status is SessionStatus.OPEN
    ]
    assert ids[0] == ids[1]
    assert open_ids == [ids[0]]


def test_duplicate_insert_falls_back_to_existing_session() -> None:
    class RacingRepository(InMemorySessionRepository):
        async def create_session(
            self, name: str, started_at: datetime
        ) -> AttendanceSession:
            # Another device inserted first and the unique index refused ours.
            winner = open_session(started_at + timedelta(seconds=1))
            self.sessions[winner.id] = winner
            raise DuplicateRecordError("kids_sessoes_one_open_per_day")

    repository = RacingRepository()
    manager = SessionManager(repository)

    session_id = asyncio.run(manager.ensure_open_session(DAY))

    assert list(repository.sessions) == [session_id]


def test_missing_session_after_insert_is_stale() -> None:
    class VanishingRepository(InMemorySessionRepository):
        async def create_session(
            self, name: str, started_at: datetime
        ) -> AttendanceSession:
            raise DuplicateRecordError("kids_sessoes_one_open_per_day")

    manager = SessionManager(VanishingRepository())

    with pytest.raises(StaleWriteError):
        asyncio.run(manager.ensure_open_session(DAY))


def test_day_follows_configured_timezone() -> None:
    repository = InMemorySessionRepository()
    manager = SessionManager(repository, timezone=ZoneInfo("America/Sao_Paulo"))
    # 01:00 UTC on the 19th is still the evening of the 18th in Sao Paulo.
    late = open_session(datetime(2026, 10, 19, 1, tzinfo=UTC))
    repository.sessions[late.id] = late

    assert asyncio.run(manager.ensure_open_session(DAY)) == late.id


def test_evening_session_of_previous_day_is_replaced() -> None:
    repository = InMemorySessionRepository(enforce_unique_day=True)
    manager = SessionManager(repository, timezone=ZoneInfo("America/Sao_Paulo"))
    # 22:00 on March 9th in Sao Paulo already falls on March 10th in UTC.
    leftover = open_session(datetime(2026, 3, 10, 1, tzinfo=UTC))
    repository.sessions[leftover.id] = leftover

    session_id = asyncio.run(manager.ensure_open_session(date(2026, 3, 10)))

    assert session_id != leftover.id
    assert repository.sessions[leftover.id].status is SessionStatus.CLOSED
    session = repository.sessions[session_id]
    assert session.status is SessionStatus.OPEN
    assert session.started_at == datetime(2026, 3, 10, 3, tzinfo=UTC)
    assert session.name == "Sessão Geral - 10/03/2026"


def test_same_day_session_is_adopted_not_closed() -> None:
    class LaggingRepository(InMemorySessionRepository):
        reads: int = 0

        async def list_open_sessions(
            self, starts_from: datetime, starts_before: datetime
        ) -> list[AttendanceSession]:
            # The first read misses a session another device just created.
            self.reads += 1
            if self.reads == 1:
                return []
            return await super().list_open_sessions(starts_from, starts_before)

    repository = LaggingRepository(enforce_unique_day=True)
    earlier = open_session(datetime(2026, 3, 10, 3, 30, tzinfo=UTC))
    repository.sessions[earlier.id] = earlier
    manager = SessionManager(repository, timezone=ZoneInfo("America/Sao_Paulo"))

    session_id = asyncio.run(manager.ensure_open_session(date(2026, 3, 10)))

    assert session_id == earlier.id
    assert repository.sessions[earlier.id].status is SessionStatus.OPEN
    assert repository.created == []


def test_close_session() -> None:
    repository = InMemorySessionRepository()
    manager = SessionManager(repository)

    async def scenario() -> AttendanceSession:
        session_id = await manager.ensure_open_session(DAY)
        return await manager.close_session(session_id)

    closed = asyncio.run(scenario())

    assert closed.status is SessionStatus.CLOSED
    assert closed.ended_at is not None
    with pytest.raises(StaleWriteError):
        asyncio.run(manager.close_session(closed.id))
