"""Guardian-facing endpoints.

The caller's guardian id arrives in ``X-Guardian-Id``; authenticating it is
the job of the gateway in front of this service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Header, Request, status

from kids_presence.api.models import (
    ChildCreate,
    ChildOut,
    ChildPresenceOut,
    ChildUpdate,
    PresenceRecordOut,
    ScanRequest,
)
from kids_presence.domain.scan import validate_scan

if TYPE_CHECKING:
    from kids_presence.containers import AppContainer

router = APIRouter(prefix="/guardian", tags=["guardian"])


@router.get("/children")
async def list_children(
    request: Request, x_guardian_id: UUID = Header()
) -> dict[str, object]:
    """Return the guardian's children with their current presence."""
    container: AppContainer = request.app.state.container
    overview = await container.child_service.overview(x_guardian_id)
    return {"children": [ChildPresenceOut.from_domain(item) for item in overview]}


@router.post("/children", status_code=status.HTTP_201_CREATED)
async def create_child(
    payload: ChildCreate, request: Request, x_guardian_id: UUID = Header()
) -> ChildOut:
    """Register a child for the guardian."""
    container: AppContainer = request.app.state.container
    child = await container.child_service.register_child(
        guardian_id=x_guardian_id,
        full_name=payload.full_name,
        birthday=payload.birthday,
        notes=payload.notes,
        photo_url=payload.photo_url,
    )
    return ChildOut.from_domain(child)


@router.patch("/children/{child_id}")
async def update_child(
    child_id: UUID,
    payload: ChildUpdate,
    request: Request,
    x_guardian_id: UUID = Header(),
) -> ChildOut:
    """Edit a child's display attributes."""
    container: AppContainer = request.app.state.container
    child = await container.child_service.update_child(
        child_id, x_guardian_id, payload.model_dump(exclude_unset=True)
    )
    return ChildOut.from_domain(child)


@router.delete("/children/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_child(
    child_id: UUID, request: Request, x_guardian_id: UUID = Header()
) -> None:
    """Delete a child with no check-in in progress."""
    container: AppContainer = request.app.state.container
    await container.child_service.delete_child(child_id, x_guardian_id)


@router.post("/checkins", status_code=status.HTTP_201_CREATED)
async def request_checkin(
    payload: ScanRequest, request: Request, x_guardian_id: UUID = Header()
) -> PresenceRecordOut:
    """Request check-in after a valid scan."""
    container: AppContainer = request.app.state.container
    validate_scan(payload.scanned_data, container.settings.scan_marker)
    record = await container.guardian_gateway.request_checkin(
        payload.child_id, x_guardian_id
    )
    return PresenceRecordOut.from_domain(record)


@router.post("/checkouts")
async def request_checkout(
    payload: ScanRequest, request: Request, x_guardian_id: UUID = Header()
) -> PresenceRecordOut:
    """Request checkout after a valid scan."""
    container: AppContainer = request.app.state.container
    validate_scan(payload.scanned_data, container.settings.scan_marker)
    record = await container.guardian_gateway.request_checkout(
        payload.child_id, x_guardian_id
    )
    return PresenceRecordOut.from_domain(record)


@router.delete("/requests/{record_id}")
async def cancel_request(
    record_id: UUID, request: Request, x_guardian_id: UUID = Header()
) -> dict[str, object]:
    """Cancel a pending check-in or checkout request."""
    container: AppContainer = request.app.state.container
    record = await container.guardian_gateway.cancel_request(record_id, x_guardian_id)
    return {"record": PresenceRecordOut.from_domain(record) if record else None}
