"""Realtime bridge from the store's change feed to local views."""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

from kids_presence.domain.changes import ChangeEvent, ChangeType
from kids_presence.services.views import LocalView

logger = logging.getLogger(__name__)


class ChangeFeed(Protocol):
    """Change feed of the presence table."""

    async def subscribe(self) -> None:
        """Start receiving changes."""

    def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield changes until the feed is closed."""

    async def close(self) -> None:
        """Stop receiving changes and end ``events``."""


@dataclass
class RealtimeSyncBridge:
    """Keeps every local view in step with the presence table.

    Update events are patched into each view by child id. Inserts and deletes
    trigger a full re-fetch instead, since their payloads do not reliably say
    which child they concern.
    """

    feed: ChangeFeed
    views: list[LocalView]
    refresh_delay_seconds: float = 0.8
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    async def start(self) -> None:
        """Subscribe, load every view, then start consuming changes."""
        await self.feed.subscribe()
        for view in self.views:
            await view.refresh()
        self._task = asyncio.get_running_loop().create_task(self._consume())

    def dispatch(self, event: ChangeEvent) -> None:
        """Apply one change event to every view."""
        if event.type is ChangeType.UPDATE and event.after is not None:
            for view in self.views:
                view.apply_record(event.after)
            return
        for view in self.views:
            view.request_refresh(self.refresh_delay_seconds)

    async def stop(self) -> None:
        """Unsubscribe and cancel background work."""
        await self.feed.close()
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        for view in self.views:
            await view.aclose()

    async def _consume(self) -> None:
        async for event in self.feed.events():
            try:
                self.dispatch(event)
            except Exception:
                logger.exception("Failed to apply %s event", event.type.value)
