"""Domain models for children and their guardians."""

from dataclasses import dataclass
from datetime import date
from uuid import UUID


@dataclass(frozen=True)
class Child:
    """A child registered by its guardian."""

    id: UUID
    guardian_id: UUID
    full_name: str
    birthday: date | None = None
    notes: str | None = None
    photo_url: str | None = None


@dataclass(frozen=True)
class GuardianProfile:
    """Display profile of a guardian account."""

    id: UUID
    full_name: str | None
    nickname: str | None = None
