"""Attendance session management."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from kids_presence.domain.errors import DuplicateRecordError, StaleWriteError
from kids_presence.domain.sessions import AttendanceSession

logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for attendance sessions."""

    async def list_open_sessions(
        self, starts_from: datetime, starts_before: datetime
    ) -> list[AttendanceSession]:
        """Return open sessions started in the window, earliest first."""

    async def create_session(
        self, name: str, started_at: datetime
    ) -> AttendanceSession:
        """Create an open session and return it."""

    async def close_session(
        self, session_id: UUID, ended_at: datetime
    ) -> AttendanceSession | None:
        """Close an open session; return None if nothing matched."""


@dataclass
class SessionManager:
    """Finds or creates the single open session for the current day."""

    repository: SessionRepository
    timezone: ZoneInfo = field(default_factory=lambda: ZoneInfo("UTC"))
    name_prefix: str = "Sessão Geral"
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def ensure_open_session(self, today: date | None = None) -> UUID:
        """Return the id of today's open session, creating it if needed."""
        day = today or datetime.now(tz=self.timezone).date()
        starts_from, starts_before = self._day_bounds(day)
        async with self._lock:
            existing = await self.repository.list_open_sessions(
                starts_from, starts_before
            )
            if existing:
                return existing[0].id

            started_at = datetime.now(tz=UTC)
            if not starts_from <= started_at < starts_before:
                started_at = starts_from
            name = f"{self.name_prefix} - {day:%d/%m/%Y}"
            try:
                created = await self.repository.create_session(
                    name=name, started_at=started_at
                )
            except DuplicateRecordError:
                logger.info("Open session for %s created concurrently", day)
                created = await self._replace_leftover_sessions(
                    starts_from, started_at, name
                )

            # Another client may have raced us; the earliest open session wins.
            sessions = await self.repository.list_open_sessions(
                starts_from, starts_before
            )
            if not sessions:
                raise StaleWriteError(f"No open session found for {day}")
            winner = sessions[0]
            if created is not None and created.id != winner.id:
                logger.info("Closing duplicate session %s", created.id)
                await self.repository.close_session(
                    created.id, ended_at=datetime.now(tz=UTC)
                )
            return winner.id

    async def close_session(self, session_id: UUID) -> AttendanceSession:
        """Close an open session."""
        closed = await self.repository.close_session(
            session_id, ended_at=datetime.now(tz=UTC)
        )
        if closed is None:
            raise StaleWriteError(f"Session {session_id} is not open")
        return closed

    async def _replace_leftover_sessions(
        self, starts_from: datetime, started_at: datetime, name: str
    ) -> AttendanceSession | None:
        """Close sessions from an earlier local day that hold today's UTC slot.

        The store allows one open session per UTC date, so an evening session
        of the previous local day can refuse today's insert.
        """
        utc_day = datetime.combine(
            started_at.astimezone(UTC).date(), time.min, tzinfo=UTC
        )
        occupying = await self.repository.list_open_sessions(
            utc_day, utc_day + timedelta(days=1)
        )
        leftovers = [s for s in occupying if s.started_at < starts_from]
        if not leftovers:
            return None
        for session in leftovers:
            logger.info("Closing session %s left open from an earlier day", session.id)
            await self.repository.close_session(
                session.id, ended_at=datetime.now(tz=UTC)
            )
        try:
            return await self.repository.create_session(
                name=name, started_at=started_at
            )
        except DuplicateRecordError:
            return None

    def _day_bounds(self, day: date) -> tuple[datetime, datetime]:
        start = datetime.combine(day, time.min, tzinfo=self.timezone)
        return start.astimezone(UTC), (start + timedelta(days=1)).astimezone(UTC)
