"""Supabase-backed child repository."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from supabase import AsyncClient

from kids_presence.adapters.supabase_errors import store_errors
from kids_presence.domain.children import Child
from kids_presence.services.children import ChildRepository

TABLE = "kids"

_COLUMNS = "id, responsavel_id, nome_completo, aniversario, observacoes, foto_url"
_FIELD_TO_COLUMN = {
    "full_name": "nome_completo",
    "birthday": "aniversario",
    "notes": "observacoes",
    "photo_url": "foto_url",
}


def _child_from_row(row: dict[str, object]) -> Child:
    birthday = row.get("aniversario")
    return Child(
        id=UUID(str(row["id"])),
        guardian_id=UUID(str(row["responsavel_id"])),
        full_name=str(row.get("nome_completo") or ""),
        birthday=date.fromisoformat(str(birthday)) if birthday else None,
        notes=row.get("observacoes") or None,
        photo_url=row.get("foto_url") or None,
    )


def _to_row(fields: dict[str, object]) -> dict[str, object]:
    row: dict[str, object] = {}
    for name, value in fields.items():
        if isinstance(value, date):
            value = value.isoformat()
        row[_FIELD_TO_COLUMN[name]] = value
    return row


@dataclass
class SupabaseChildRepository(ChildRepository):
    """Supabase implementation for children."""

    client: AsyncClient

    async def get_child(self, child_id: UUID) -> Child | None:
        """Return a child by id, if present."""
        with store_errors("get child"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .eq("id", str(child_id))
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _child_from_row(response.data[0])

    async def list_for_guardian(self, guardian_id: UUID) -> list[Child]:
        """Return a guardian's children ordered by name."""
        with store_errors("list children"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .eq("responsavel_id", str(guardian_id))
                .order("nome_completo")
                .execute()
            )
        return [_child_from_row(row) for row in response.data or []]

    async def get_children(self, child_ids: list[UUID]) -> list[Child]:
        """Return the children with the given ids."""
        if not child_ids:
            return []
        with store_errors("get children"):
            response = (
                await self.client.table(TABLE)
                .select(_COLUMNS)
                .in_("id", [str(child_id) for child_id in child_ids])
                .execute()
            )
        return [_child_from_row(row) for row in response.data or []]

    async def create_child(  # noqa: PLR0913
        self,
        guardian_id: UUID,
        full_name: str,
        birthday: date | None,
        notes: str | None,
        photo_url: str | None,
    ) -> Child:
        """Create a child row and return it."""
        payload = {"responsavel_id": str(guardian_id)} | _to_row(
            {
                "full_name": full_name,
                "birthday": birthday,
                "notes": notes,
                "photo_url": photo_url,
            }
        )
        with store_errors("create child"):
            response = await self.client.table(TABLE).insert(payload).execute()
        if not response.data:
            raise RuntimeError("Failed to create child")
        return _child_from_row(response.data[0])

    async def update_child(
        self, child_id: UUID, fields: dict[str, object]
    ) -> Child | None:
        """Update a child's display attributes."""
        with store_errors("update child"):
            response = (
                await self.client.table(TABLE)
                .update(_to_row(fields))
                .eq("id", str(child_id))
                .execute()
            )
        if not response.data:
            return None
        return _child_from_row(response.data[0])

    async def delete_child(self, child_id: UUID) -> bool:
        """Delete a child row."""
        with store_errors("delete child"):
            response = (
                await self.client.table(TABLE)
                .delete()
                .eq("id", str(child_id))
                .execute()
            )
        return bool(response.data)
