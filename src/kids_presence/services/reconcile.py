"""Optimistic local mutation with delayed reconciliation."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Undo = Callable[[], None]


@dataclass
class Reconciler:
    """Apply locally, confirm via the store, then re-fetch after a delay.

    Scheduled re-fetches are debounced: a newer schedule replaces one that has
    not fired yet.
    """

    refresh: Callable[[], Awaitable[object]]
    delay_seconds: float = 1.2
    failure_delay_seconds: float = 0.5
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    async def run(
        self,
        commit: Callable[[], Awaitable[T]],
        *,
        optimistic: Callable[[], Undo] | None = None,
        confirm: Callable[[T], None] | None = None,
    ) -> T:
        """Run a store mutation around an optimistic local change.

        ``optimistic`` applies the change to the local view and returns its
        undo. The undo runs if ``commit`` raises; ``confirm`` receives the
        store's result otherwise. A reconciling re-fetch is scheduled either
        way.
        """
        undo = optimistic() if optimistic is not None else None
        try:
            result = await commit()
        except BaseException:
            if undo is not None:
                undo()
            self.schedule(self.failure_delay_seconds)
            raise
        if confirm is not None:
            confirm(result)
        self.schedule()
        return result

    def schedule(self, delay_seconds: float | None = None) -> None:
        """Schedule a full re-fetch, replacing any pending one."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        delay = self.delay_seconds if delay_seconds is None else delay_seconds
        self._task = asyncio.get_running_loop().create_task(self._refresh_later(delay))

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    async def flush(self) -> None:
        """Wait for a scheduled re-fetch to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel any scheduled re-fetch."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None

    async def _refresh_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.refresh()
        except Exception:
            logger.exception("Reconciling re-fetch failed")
