"""Supabase-backed attendance session repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import AsyncClient

from kids_presence.adapters.supabase_errors import store_errors
from kids_presence.domain.sessions import AttendanceSession, SessionStatus
from kids_presence.services.sessions import SessionRepository

TABLE = "kids_sessoes"

_COLUMNS = "id, nome, status, inicio_em, fim_em"
_STATUS_TO_ROW = {SessionStatus.OPEN: "aberta", SessionStatus.CLOSED: "fechada"}
_STATUS_FROM_ROW = {value: key for key, value in _STATUS_TO_ROW.items()}


def _session_from_row(row: dict[str, object]) -> AttendanceSession:
    return AttendanceSession(
        id=UUID(str(row["id"])),
        name=str(row.get("nome") or ""),
        status=_STATUS_FROM_ROW[str(row["status"])],
        started_at=datetime.fromisoformat(str(row["inicio_em"])),
        ended_at=datetime.fromisoformat(str(row["fim_em"]))
        if row.get("fim_em")
        else None,
    )


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for attendance sessions."""

    client: AsyncClient

    async def list_open_sessions(
        self, starts_from: datetime, starts_before: datetime
    ) -> list[AttendanceSession]:
        """Return open sessions started in the window, earliest first."""
        with store_errors("list open sessions"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .eq("status", _STATUS_TO_ROW[SessionStatus.OPEN])
                .gte("inicio_em", starts_from.isoformat())
                .lt("inicio_em", starts_before.isoformat())
                .order("inicio_em")
                .order("id")
                .execute()
            )
        return [_session_from_row(row) for row in response.data or []]

    async def create_session(
        self, name: str, started_at: datetime
    ) -> AttendanceSession:
        """Create an open session row and return it."""
        with store_errors("create session"):
            response = (
                await self.client.table(TABLE)
                .insert(
                    {
                        "nome": name,
                        "status": _STATUS_TO_ROW[SessionStatus.OPEN],
                        "inicio_em": started_at.isoformat(),
                    }
                )
                .execute()
            )
        if not response.data:
            raise RuntimeError("Failed to create session")
        return _session_from_row(response.data[0])

    async def close_session(
        self, session_id: UUID, ended_at: datetime
    ) -> AttendanceSession | None:
        """Close an open session."""
        with store_errors("close session"):
            response = (
                await self.client.table(TABLE)
                .update(
                    {
                        "status": _STATUS_TO_ROW[SessionStatus.CLOSED],
                        "fim_em": ended_at.isoformat(),
                    }
                )
                .eq("id", str(session_id))
                .eq("status", _STATUS_TO_ROW[SessionStatus.OPEN])
                .execute()
            )
        if not response.data:
            return None
        return _session_from_row(response.data[0])
