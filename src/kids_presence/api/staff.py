"""Staff endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from kids_presence.api.models import PendingRequestOut, PresenceRecordOut

if TYPE_CHECKING:
    from kids_presence.containers import AppContainer

router = APIRouter(prefix="/staff", tags=["staff"])


def _get_staff_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.staff_token


async def require_staff(
    x_staff_token: str | None = Header(default=None),
    staff_token: str = Depends(_get_staff_token),
) -> None:
    """Ensure requests include a valid staff token."""
    if not x_staff_token or x_staff_token != staff_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/pending", dependencies=[Depends(require_staff)])
async def list_pending(request: Request, refresh: bool = False) -> dict[str, object]:
    """Return the latest pending request per child."""
    container: AppContainer = request.app.state.container
    board = container.staff_gateway.board
    if refresh or not board.loaded:
        await board.refresh()
    return {
        "pending": [PendingRequestOut.from_domain(item) for item in board.snapshot()]
    }


@router.post("/requests/{record_id}/approve", dependencies=[Depends(require_staff)])
async def approve_request(
    record_id: UUID, request: Request, x_staff_id: UUID = Header()
) -> PresenceRecordOut:
    """Approve a pending check-in or release a child."""
    container: AppContainer = request.app.state.container
    record = await container.staff_gateway.approve(record_id, x_staff_id)
    return PresenceRecordOut.from_domain(record)


@router.post("/sessions/current", dependencies=[Depends(require_staff)])
async def current_session(request: Request) -> dict[str, str]:
    """Return today's open session, creating it if needed."""
    container: AppContainer = request.app.state.container
    session_id = await container.session_manager.ensure_open_session()
    return {"session_id": str(session_id)}


@router.post("/sessions/{session_id}/close", dependencies=[Depends(require_staff)])
async def close_session(session_id: UUID, request: Request) -> dict[str, str]:
    """Close an attendance session."""
    container: AppContainer = request.app.state.container
    session = await container.session_manager.close_session(session_id)
    return {"session_id": str(session.id), "status": session.status.value}
