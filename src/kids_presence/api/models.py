"""Pydantic models for the HTTP API."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from kids_presence.domain.children import Child, GuardianProfile
from kids_presence.domain.presence import (
    ChildPresence,
    PendingRequest,
    PresenceRecord,
)
from kids_presence.domain.transitions import state_of


class ScanRequest(BaseModel):
    """Check-in or checkout submitted after scanning the area's code."""

    child_id: UUID | None = None
    scanned_data: str | None = None


class ChildCreate(BaseModel):
    """Payload for registering a child."""

    full_name: str = Field(min_length=1)
    birthday: date | None = None
    notes: str | None = None
    photo_url: str | None = None


class ChildUpdate(BaseModel):
    """Partial update of a child's display attributes."""

    full_name: str | None = Field(default=None, min_length=1)
    birthday: date | None = None
    notes: str | None = None
    photo_url: str | None = None


class ChildOut(BaseModel):
    """Child payload."""

    id: UUID
    guardian_id: UUID
    full_name: str
    birthday: date | None = None
    notes: str | None = None
    photo_url: str | None = None

    @classmethod
    def from_domain(cls, child: Child) -> "ChildOut":
        return cls(
            id=child.id,
            guardian_id=child.guardian_id,
            full_name=child.full_name,
            birthday=child.birthday,
            notes=child.notes,
            photo_url=child.photo_url,
        )


class GuardianOut(BaseModel):
    """Guardian profile payload."""

    id: UUID
    full_name: str | None = None
    nickname: str | None = None

    @classmethod
    def from_domain(cls, profile: GuardianProfile) -> "GuardianOut":
        return cls(
            id=profile.id, full_name=profile.full_name, nickname=profile.nickname
        )


class PresenceRecordOut(BaseModel):
    """Presence record payload."""

    id: UUID
    child_id: UUID
    session_id: UUID | None = None
    requested_by: UUID | None = None
    status: str
    state: str
    requested_at: datetime
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    released_at: datetime | None = None
    released_by: UUID | None = None

    @classmethod
    def from_domain(cls, record: PresenceRecord) -> "PresenceRecordOut":
        return cls(
            id=record.id,
            child_id=record.child_id,
            session_id=record.session_id,
            requested_by=record.requested_by,
            status=record.status.value,
            state=state_of(record).value,
            requested_at=record.requested_at,
            approved_by=record.approved_by,
            approved_at=record.approved_at,
            released_at=record.released_at,
            released_by=record.released_by,
        )


class ChildPresenceOut(BaseModel):
    """A guardian's child with its active record."""

    child: ChildOut
    record: PresenceRecordOut | None = None

    @classmethod
    def from_domain(cls, item: ChildPresence) -> "ChildPresenceOut":
        return cls(
            child=ChildOut.from_domain(item.child),
            record=PresenceRecordOut.from_domain(item.record) if item.record else None,
        )


class PendingRequestOut(BaseModel):
    """Pending request as listed for staff."""

    record: PresenceRecordOut
    intent: str
    child: ChildOut | None = None
    guardian: GuardianOut | None = None

    @classmethod
    def from_domain(cls, request: PendingRequest) -> "PendingRequestOut":
        return cls(
            record=PresenceRecordOut.from_domain(request.record),
            intent=request.intent.value,
            child=ChildOut.from_domain(request.child) if request.child else None,
            guardian=GuardianOut.from_domain(request.guardian)
            if request.guardian
            else None,
        )
