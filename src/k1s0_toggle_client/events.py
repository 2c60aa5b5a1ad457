"""Synchronous in-process event bus for client lifecycle and impression events."""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog


@dataclass
class Event:
    """Event delivered to subscribers."""

    event_type: str
    payload: Any = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


EventHandler = Callable[[Event], None]


class EventBus:
    """Publish/subscribe bus owned by a single client.

    Handlers run synchronously in subscription order. A handler that raises
    is logged and skipped so the remaining handlers still see the event.
    """

    def __init__(self, logger: Any | None = None) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._logger = logger or structlog.get_logger(__name__)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """Subscribe a handler to an event type."""
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, event_type: str, handler: EventHandler | None = None) -> None:
        """Remove one handler, or all handlers for the event type when omitted."""
        if handler is None:
            self._handlers.pop(event_type, None)
            return
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: str, payload: Any = None) -> Event:
        """Publish an event to all subscribed handlers."""
        event = Event(event_type=event_type, payload=payload)
        for handler in list(self._handlers.get(event_type, [])):
            try:
                handler(event)
            except Exception as e:
                self._logger.error(
                    "event handler failed",
                    event_type=event_type,
                    error=repr(e),
                )
        return event
