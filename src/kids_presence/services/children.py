"""Children directory and guardian overview."""

from dataclasses import dataclass
from datetime import date
from typing import Protocol
from uuid import UUID

from kids_presence.domain.children import Child, GuardianProfile
from kids_presence.domain.errors import (
    ConflictError,
    RejectionReason,
    StaleWriteError,
    ValidationError,
)
from kids_presence.domain.presence import ChildPresence
from kids_presence.services.events import ChildrenUpdated, EventBus
from kids_presence.services.presence import PresenceRepository, retry_reads
from kids_presence.services.views import PresenceBoard


class ChildRepository(Protocol):
    """Persistence interface for children."""

    async def get_child(self, child_id: UUID) -> Child | None:
        """Return a child by id, if present."""

    async def list_for_guardian(self, guardian_id: UUID) -> list[Child]:
        """Return a guardian's children ordered by name."""

    async def get_children(self, child_ids: list[UUID]) -> list[Child]:
        """Return the children with the given ids."""

    async def create_child(  # noqa: PLR0913
        self,
        guardian_id: UUID,
        full_name: str,
        birthday: date | None,
        notes: str | None,
        photo_url: str | None,
    ) -> Child:
        """Create a child and return it."""

    async def update_child(
        self, child_id: UUID, fields: dict[str, object]
    ) -> Child | None:
        """Update a child's display attributes."""

    async def delete_child(self, child_id: UUID) -> bool:
        """Delete a child; return False if nothing matched."""


class GuardianDirectory(Protocol):
    """Read access to guardian display profiles."""

    async def get_profiles(self, guardian_ids: list[UUID]) -> list[GuardianProfile]:
        """Return profiles for the given guardian ids."""


_EDITABLE_FIELDS = {"full_name", "birthday", "notes", "photo_url"}


@dataclass
class ChildService:
    """Guardian-owned child records plus their current presence."""

    repository: ChildRepository
    presence: PresenceRepository
    board: PresenceBoard
    events: EventBus

    @retry_reads
    async def list_children(self, guardian_id: UUID) -> list[Child]:
        """Return the guardian's children."""
        return await self.repository.list_for_guardian(guardian_id)

    async def overview(self, guardian_id: UUID) -> list[ChildPresence]:
        """Return each of the guardian's children with its active record."""
        children = await self.list_children(guardian_id)
        return [
            ChildPresence(child=child, record=self.board.current(child.id))
            for child in children
        ]

    async def register_child(  # noqa: PLR0913
        self,
        guardian_id: UUID,
        full_name: str,
        birthday: date | None = None,
        notes: str | None = None,
        photo_url: str | None = None,
    ) -> Child:
        """Create a child owned by ``guardian_id``."""
        if not full_name or not full_name.strip():
            raise ValidationError("Child name is required")
        child = await self.repository.create_child(
            guardian_id=guardian_id,
            full_name=full_name.strip(),
            birthday=birthday,
            notes=notes,
            photo_url=photo_url,
        )
        self.events.publish(ChildrenUpdated(guardian_id=guardian_id))
        return child

    async def update_child(
        self, child_id: UUID, guardian_id: UUID, fields: dict[str, object]
    ) -> Child:
        """Edit a child's display attributes."""
        unknown = set(fields) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot edit fields: {', '.join(sorted(unknown))}")
        if "full_name" in fields:
            name = fields["full_name"]
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("Child name is required")
            fields = {**fields, "full_name": name.strip()}
        await self._owned_child(child_id, guardian_id)
        updated = await self.repository.update_child(child_id, fields)
        if updated is None:
            raise StaleWriteError(f"Child {child_id} no longer exists")
        self.events.publish(ChildrenUpdated(guardian_id=guardian_id))
        return updated

    async def delete_child(self, child_id: UUID, guardian_id: UUID) -> None:
        """Delete a child that has no active presence record."""
        await self._owned_child(child_id, guardian_id)
        if await self.presence.get_active_for_child(child_id) is not None:
            raise ConflictError(
                RejectionReason.ALREADY_ACTIVE,
                "Child has a check-in in progress",
            )
        if not await self.repository.delete_child(child_id):
            raise StaleWriteError(f"Child {child_id} no longer exists")
        self.events.publish(ChildrenUpdated(guardian_id=guardian_id))

    async def _owned_child(self, child_id: UUID, guardian_id: UUID) -> Child:
        child = await self.repository.get_child(child_id)
        if child is None:
            raise ValidationError(f"Unknown child {child_id}")
        if child.guardian_id != guardian_id:
            raise ConflictError(
                RejectionReason.NOT_OWNER, "Child belongs to another guardian"
            )
        return child
