"""Chat session event emitter for UI updates.

Every observable change of a ChatSession (status transitions, messages
added or typed into, errors) is emitted as a ChatEvent to registered
listeners. Display layers subscribe instead of polling the session.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ChatEventType(StrEnum):
    """Types of chat session events."""

    STATUS_CHANGED = "status_changed"
    MESSAGE_ADDED = "message_added"
    MESSAGE_UPDATED = "message_updated"
    TRANSCRIPT_CLEARED = "transcript_cleared"
    ERROR = "error"


class ChatEvent(BaseModel):
    """A single chat session event."""

    type: ChatEventType = Field(description="Event type")
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix timestamp when the event occurred",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload — varies by event type",
    )


# Type alias for event listener callbacks
EventListener = Callable[[ChatEvent], Any]


class ChatEventEmitter:
    """Broadcasts chat events to registered listeners.

    Emission is synchronous so that state changes made from plain methods
    such as ``ChatSession.cancel()`` are visible immediately. Sync listeners
    are called in place; coroutine listeners are scheduled on the running
    loop. Listener exceptions are logged but never propagate.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []
        self._pending: set[asyncio.Task[Any]] = set()

    def add_listener(self, listener: EventListener) -> None:
        """Register a listener to receive chat events."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        """Remove a previously registered listener."""
        self._listeners = [ln for ln in self._listeners if ln != listener]

    def emit(self, event_type: ChatEventType, **data: Any) -> ChatEvent:
        """Dispatch a ChatEvent to every listener and return it."""
        event = ChatEvent(type=event_type, data=data)

        for listener in self._listeners:
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    self._schedule(result, event_type)
            except Exception:
                logger.exception("Event listener error for %s", event_type)
        return event

    def _schedule(self, coro: Any, event_type: ChatEventType) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("Dropped async listener for %s: no running event loop", event_type)
            return
        self._pending.add(task)
        task.add_done_callback(self._on_listener_done)

    def _on_listener_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Async event listener failed", exc_info=task.exception())
