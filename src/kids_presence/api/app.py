"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from kids_presence.api.guardian import router as guardian_router
from kids_presence.api.staff import router as staff_router
from kids_presence.app_logging import configure_logging
from kids_presence.config import Settings
from kids_presence.containers import AppContainer, build_container
from kids_presence.domain.errors import (
    ConflictError,
    PresenceError,
    RejectionReason,
    StaleWriteError,
    TransportError,
    ValidationError,
)

_FORBIDDEN_REASONS = {RejectionReason.NOT_OWNER, RejectionReason.NOT_AUTHORIZED}


def _status_for(exc: PresenceError) -> int:
    if isinstance(exc, ValidationError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, ConflictError) and exc.reason in _FORBIDDEN_REASONS:
        return status.HTTP_403_FORBIDDEN
    if isinstance(exc, ConflictError | StaleWriteError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, TransportError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(
    container: AppContainer | None = None, settings: Settings | None = None
) -> FastAPI:
    """Create a FastAPI app.

    Without a container one is built from settings when the app starts.
    """
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "container", None) is None:
            app.state.container = await build_container(settings)
        state_container: AppContainer = app.state.container
        await state_container.sync_bridge.start()
        logger.info("Presence sync started")
        try:
            yield
        finally:
            await state_container.close_resources()
            logger.info("Presence sync stopped")

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(guardian_router)
    app.include_router(staff_router)

    @app.exception_handler(PresenceError)
    async def presence_error_handler(
        request: Request, exc: PresenceError
    ) -> JSONResponse:
        code = exc.reason.value if isinstance(exc, ConflictError) else exc.code
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code, content={"error": code, "detail": str(exc)}
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
