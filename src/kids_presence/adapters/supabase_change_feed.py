"""Supabase Realtime change feed for presence records."""

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from supabase import AsyncClient

from kids_presence.adapters.supabase_errors import store_errors
from kids_presence.adapters.supabase_presence_repository import (
    TABLE,
    presence_record_from_row,
)
from kids_presence.domain.changes import ChangeEvent, ChangeType
from kids_presence.domain.errors import TransportError
from kids_presence.domain.presence import PresenceRecord
from kids_presence.services.sync import ChangeFeed

logger = logging.getLogger(__name__)

_EVENT_TYPES = {
    "INSERT": ChangeType.INSERT,
    "UPDATE": ChangeType.UPDATE,
    "DELETE": ChangeType.DELETE,
}


def _record_or_none(row: object) -> PresenceRecord | None:
    if not isinstance(row, Mapping) or not row:
        return None
    try:
        return presence_record_from_row(row)
    except (KeyError, ValueError):
        # Delete payloads usually carry only the primary key.
        return None


def change_event_from_payload(payload: Mapping[str, Any]) -> ChangeEvent | None:
    """Map a Realtime postgres_changes payload to a change event."""
    data = payload.get("data", payload)
    change_type = _EVENT_TYPES.get(str(data.get("type") or data.get("eventType")))
    if change_type is None:
        return None
    return ChangeEvent(
        type=change_type,
        before=_record_or_none(data.get("old_record", data.get("old"))),
        after=_record_or_none(data.get("record", data.get("new"))),
    )


@dataclass
class SupabaseChangeFeed(ChangeFeed):
    """Streams ``kids_checkins`` changes from a Realtime channel."""

    client: AsyncClient
    channel_name: str = "kids_presence_realtime"
    _queue: asyncio.Queue = field(default_factory=asyncio.Queue, init=False)
    _channel: Any = field(default=None, init=False, repr=False)

    async def subscribe(self) -> None:
        """Join the Realtime channel for the presence table."""
        channel = self.client.channel(self.channel_name)
        channel.on_postgres_changes(
            "*", schema="public", table=TABLE, callback=self._on_change
        )
        try:
            await channel.subscribe()
        except Exception as exc:
            raise TransportError(
                f"Could not subscribe to presence changes: {exc}"
            ) from exc
        self._channel = channel

    async def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield change events until the feed is closed."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    async def close(self) -> None:
        """Leave the channel and end ``events``."""
        if self._channel is not None:
            with store_errors("unsubscribe from presence changes"):
                await self.client.remove_channel(self._channel)
            self._channel = None
        self._queue.put_nowait(None)

    def _on_change(self, payload: Mapping[str, Any]) -> None:
        event = change_event_from_payload(payload)
        if event is None:
            logger.warning("Ignoring unrecognised change payload")
            return
        self._queue.put_nowait(event)
