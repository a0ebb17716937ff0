"""Supabase-backed guardian profile lookups."""

from dataclasses import dataclass
from uuid import UUID

from supabase import AsyncClient

from kids_presence.adapters.supabase_errors import store_errors
from kids_presence.domain.children import GuardianProfile
from kids_presence.services.children import GuardianDirectory


@dataclass
class SupabaseGuardianDirectory(GuardianDirectory):
    """Reads guardian display names from the profiles table."""

    client: AsyncClient

    async def get_profiles(self, guardian_ids: list[UUID]) -> list[GuardianProfile]:
        """Return profiles for the given guardian ids."""
        if not guardian_ids:
            return []
        with store_errors("get guardian profiles"):
            response = (
                await self.client.table("perfis")
                .select("id, nome_completo, apelido")
                .in_("id", [str(guardian_id) for guardian_id in guardian_ids])
                .execute()
            )
        return [
            GuardianProfile(
                id=UUID(str(row["id"])),
                full_name=row.get("nome_completo"),
                nickname=row.get("apelido"),
            )
            for row in response.data or []
        ]
