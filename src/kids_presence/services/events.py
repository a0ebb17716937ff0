"""Process-scoped publish/subscribe for cross-screen refresh signals."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeVar
from uuid import UUID

from kids_presence.domain.presence import PresenceRecord
from kids_presence.domain.transitions import Action

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceChanged:
    """A presence record was mutated successfully."""

    action: Action
    record: PresenceRecord | None
    child_id: UUID


@dataclass(frozen=True)
class ChildrenUpdated:
    """A guardian's children were created, edited or deleted."""

    guardian_id: UUID


Event = PresenceChanged | ChildrenUpdated
E = TypeVar("E", PresenceChanged, ChildrenUpdated)


@dataclass
class EventBus:
    """Typed event bus injected into the components that publish or listen."""

    _handlers: dict[type, list[Callable]] = field(default_factory=dict)
    _closed: bool = False

    def subscribe(
        self, event_type: type[E], handler: Callable[[E], None]
    ) -> Callable[[], None]:
        """Register a handler and return a callable that removes it."""
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def publish(self, event: Event) -> None:
        """Deliver an event to every handler registered for its type."""
        if self._closed:
            return
        for handler in list(self._handlers.get(type(event), [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler failed for %s", type(event).__name__)

    def close(self) -> None:
        """Drop every subscription; later publishes are ignored."""
        self._handlers.clear()
        self._closed = True
