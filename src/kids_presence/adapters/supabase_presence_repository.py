"""Supabase-backed presence record repository."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import AsyncClient

from kids_presence.adapters.supabase_errors import store_errors
from kids_presence.domain.presence import PresenceRecord, PresenceStatus
from kids_presence.services.presence import PresenceRepository

TABLE = "kids_checkins"

_COLUMNS = (
    "id, kid_id, sessao_id, checkin_por, status, criado_em, "
    "aprovado_por, aprovado_em, checkout_em, checkout_por"
)

_STATUS_TO_ROW = {
    PresenceStatus.PENDING: "pendente",
    PresenceStatus.APPROVED: "aprovado",
    PresenceStatus.FINALIZED: "finalizado",
}
_STATUS_FROM_ROW = {value: key for key, value in _STATUS_TO_ROW.items()}
_ACTIVE_ROW_STATUSES = [
    _STATUS_TO_ROW[PresenceStatus.PENDING],
    _STATUS_TO_ROW[PresenceStatus.APPROVED],
]


def _uuid(value: object) -> UUID | None:
    return UUID(str(value)) if value else None


def _timestamp(value: object) -> datetime | None:
    return datetime.fromisoformat(str(value)) if value else None


def presence_record_from_row(row: Mapping[str, object]) -> PresenceRecord:
    """Map a ``kids_checkins`` row to a presence record."""
    requested_at = _timestamp(row["criado_em"])
    if requested_at is None:
        raise ValueError(f"Presence row {row.get('id')} has no creation time")
    return PresenceRecord(
        id=UUID(str(row["id"])),
        child_id=UUID(str(row["kid_id"])),
        session_id=_uuid(row.get("sessao_id")),
        requested_by=_uuid(row.get("checkin_por")),
        status=_STATUS_FROM_ROW[str(row["status"])],
        requested_at=requested_at,
        approved_by=_uuid(row.get("aprovado_por")),
        approved_at=_timestamp(row.get("aprovado_em")),
        released_at=_timestamp(row.get("checkout_em")),
        released_by=_uuid(row.get("checkout_por")),
    )


def _first(rows: list[dict[str, object]] | None) -> PresenceRecord | None:
    if not rows:
        return None
    return presence_record_from_row(rows[0])


@dataclass
class SupabasePresenceRepository(PresenceRepository):
    """Supabase implementation for presence records.

    Mutations filter on the state they expect, so a write that lost a race
    matches no rows and returns ``None``.
    """

    client: AsyncClient

    async def get_record(self, record_id: UUID) -> PresenceRecord | None:
        """Return a record by id, if present."""
        with store_errors("get presence record"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .eq("id", str(record_id))
                .limit(1)
                .execute()
            )
        return _first(response.data)

    async def get_active_for_child(self, child_id: UUID) -> PresenceRecord | None:
        """Return the most recent active record for a child."""
        with store_errors("get active presence record"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .eq("kid_id", str(child_id))
                .in_("status", _ACTIVE_ROW_STATUSES)
                .order("criado_em", desc=True)
                .limit(1)
                .execute()
            )
        return _first(response.data)

    async def list_active(self) -> list[PresenceRecord]:
        """Return every pending or approved record."""
        with store_errors("list active presence records"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .in_("status", _ACTIVE_ROW_STATUSES)
                .order("criado_em")
                .execute()
            )
        return [presence_record_from_row(row) for row in response.data or []]

    async def list_pending(self) -> list[PresenceRecord]:
        """Return every pending record, oldest first."""
        with store_errors("list pending presence records"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .eq("status", _STATUS_TO_ROW[PresenceStatus.PENDING])
                .order("criado_em")
                .execute()
            )
        return [presence_record_from_row(row) for row in response.data or []]

    async def create_pending(
        self, child_id: UUID, session_id: UUID, guardian_id: UUID
    ) -> PresenceRecord:
        """Insert a pending check-in request."""
        with store_errors("create presence record"):
            response = (
                await self.client.table(TABLE)
                .insert(
                    {
                        "kid_id": str(child_id),
                        "sessao_id": str(session_id),
                        "checkin_por": str(guardian_id),
                        "status": _STATUS_TO_ROW[PresenceStatus.PENDING],
                    }
                )
                .execute()
            )
        record = _first(response.data)
        if record is None:
            raise RuntimeError("Failed to create presence record")
        return record

    async def request_checkout(self, record_id: UUID) -> PresenceRecord | None:
        """Move an approved record back to pending."""
        with store_errors("request checkout"):
            response = (
                await self.client.table(TABLE)
                .update({"status": _STATUS_TO_ROW[PresenceStatus.PENDING]})
                .eq("id", str(record_id))
                .eq("status", _STATUS_TO_ROW[PresenceStatus.APPROVED])
                .execute()
            )
        return _first(response.data)

    async def approve_checkin(
        self, record_id: UUID, staff_id: UUID, approved_at: datetime
    ) -> PresenceRecord | None:
        """Approve a pending check-in that was never approved before."""
        with store_errors("approve check-in"):
            response = (
                await self.client.table(TABLE)
                .update(
                    {
                        "status": _STATUS_TO_ROW[PresenceStatus.APPROVED],
                        "aprovado_por": str(staff_id),
                        "aprovado_em": approved_at.isoformat(),
                    }
                )
                .eq("id", str(record_id))
                .eq("status", _STATUS_TO_ROW[PresenceStatus.PENDING])
                .is_("aprovado_em", "null")
                .execute()
            )
        return _first(response.data)

    async def release(
        self, record_id: UUID, staff_id: UUID, released_at: datetime
    ) -> PresenceRecord | None:
        """Finalize a pending checkout request."""
        with store_errors("release child"):
            response = (
                await self.client.table(TABLE)
                .update(
                    {
                        "status": _STATUS_TO_ROW[PresenceStatus.FINALIZED],
                        "checkout_por": str(staff_id),
                        "checkout_em": released_at.isoformat(),
                    }
                )
                .eq("id", str(record_id))
                .eq("status", _STATUS_TO_ROW[PresenceStatus.PENDING])
                .not_.is_("aprovado_em", "null")
                .execute()
            )
        return _first(response.data)

    async def withdraw_checkout(self, record_id: UUID) -> PresenceRecord | None:
        """Return a pending checkout request to approved."""
        with store_errors("withdraw checkout"):
            response = (
                await self.client.table(TABLE)
                .update({"status": _STATUS_TO_ROW[PresenceStatus.APPROVED]})
                .eq("id", str(record_id))
                .eq("status", _STATUS_TO_ROW[PresenceStatus.PENDING])
                .not_.is_("aprovado_em", "null")
                .execute()
            )
        return _first(response.data)

    async def delete_pending_checkin(self, record_id: UUID) -> bool:
        """Delete a pending check-in that was never approved."""
        with store_errors("cancel check-in"):
            response = (
                await self.client.table(TABLE)
                .delete()
                .eq("id", str(record_id))
                .eq("status", _STATUS_TO_ROW[PresenceStatus.PENDING])
                .is_("aprovado_em", "null")
                .execute()
            )
        return bool(response.data)
