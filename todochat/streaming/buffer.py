"""Typing-effect buffer between the network stream and the transcript.

The stream delivers text in bursts; the controller reveals it one character
per tick so the reply reads as if typed. Arrival and display are decoupled,
but a character is never displayed before it has arrived.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from todochat.chat.transcript import Transcript
from todochat.schemas.messages import Message

logger = logging.getLogger(__name__)

DEFAULT_TICK_INTERVAL = 0.03  # seconds per revealed character
DEFAULT_DRAIN_TIMEOUT = 10.0  # finalize() ceiling before force-flushing

# Called with the message after each visible change
UpdateListener = Callable[[Message], Any]


@dataclass
class BufferState:
    """Mutable state of one BufferController.

    ``displayed_count`` counts characters revealed into the active message
    since its turn started. It only grows while ``active_message_id`` is set.
    """

    pending: deque[str] = field(default_factory=deque)
    displayed_count: int = 0
    active_message_id: str | None = None


class BufferController:
    """Drains a FIFO character queue into the active assistant message.

    A periodic timer task pops one character per ``tick_interval``. The
    timer is started on demand by :meth:`ensure_running` and stops itself
    once the queue is empty and no turn is active. Outside a running event
    loop no timer is started and :meth:`tick` must be driven by the caller.
    """

    def __init__(
        self,
        transcript: Transcript,
        *,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        on_update: UpdateListener | None = None,
    ) -> None:
        self._transcript = transcript
        self._tick_interval = tick_interval
        self._drain_timeout = drain_timeout
        self._on_update = on_update
        self._state = BufferState()
        self._timer: asyncio.Task[None] | None = None
        self._drained = asyncio.Event()
        self._drained.set()

    # ── Introspection ────────────────────────────────────────────

    @property
    def state(self) -> BufferState:
        return self._state

    @property
    def active_message_id(self) -> str | None:
        return self._state.active_message_id

    @property
    def pending_text(self) -> str:
        """Characters received but not yet displayed."""
        return "".join(self._state.pending)

    @property
    def running(self) -> bool:
        """True while the tick timer task is alive."""
        return self._timer is not None and not self._timer.done()

    # ── Turn lifecycle ───────────────────────────────────────────

    def reset(self, message_id: str) -> None:
        """Start a new turn targeting ``message_id``."""
        self._state.pending.clear()
        self._state.active_message_id = message_id
        self._state.displayed_count = 0
        self._drained.set()
        logger.debug("Buffer reset for message %s", message_id)

    def enqueue(self, text: str) -> None:
        """Queue text for display. Ignored when no turn is active."""
        if self._state.active_message_id is None or not text:
            return
        self._state.pending.extend(text)
        self._drained.clear()
        self.ensure_running()

    def ensure_running(self) -> None:
        """Start the tick timer if it is not already running."""
        if self.running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running event loop; ticks are driven manually
            return
        self._timer = loop.create_task(self._run_timer(), name="buffer-tick")

    def tick(self) -> bool:
        """Reveal one pending character. Returns True if one was displayed."""
        state = self._state
        if state.active_message_id is None or not state.pending:
            return False

        message = self._transcript.get(state.active_message_id)
        if message is None:
            # Conversation was cleared under us
            state.pending.clear()
            self._drained.set()
            return False

        message.content += state.pending.popleft()
        state.displayed_count += 1
        if not state.pending:
            self._drained.set()
        self._notify(message)
        return True

    def flush(self) -> int:
        """Reveal every pending character at once. Returns how many."""
        state = self._state
        if state.active_message_id is None or not state.pending:
            return 0
        message = self._transcript.get(state.active_message_id)
        if message is None:
            state.pending.clear()
            self._drained.set()
            return 0

        text = "".join(state.pending)
        state.pending.clear()
        message.content += text
        state.displayed_count += len(text)
        self._drained.set()
        self._notify(message)
        return len(text)

    async def finalize(self) -> bool:
        """Complete the turn once everything received has been displayed.

        Waits up to ``drain_timeout`` for the queue to empty. If the wait
        times out the remainder is flushed in one shot. Either way the
        message is then marked non-streaming, the turn is closed and the
        timer stopped.

        Returns:
            True if the buffer drained on its own, False if it was flushed.
        """
        message_id = self._state.active_message_id
        if message_id is None:
            return True

        drained = True
        try:
            await asyncio.wait_for(self._wait_drained(), timeout=self._drain_timeout)
        except TimeoutError:
            drained = False
            logger.warning(
                "Buffer drain timed out after %.1fs, flushing %d characters",
                self._drain_timeout, len(self._state.pending),
            )
            self.flush()

        if self._state.active_message_id != message_id:
            # stop() or reset() ran while we were waiting; that turn is gone
            return drained

        self._state.active_message_id = None
        self._cancel_timer()
        message = self._transcript.get(message_id)
        if message is not None:
            message.is_streaming = False
            self._notify(message)
        logger.debug(
            "Buffer finalized for message %s (%d characters)",
            message_id, self._state.displayed_count,
        )
        return drained

    def stop(self) -> None:
        """Discard pending text, close the turn and stop the timer."""
        self._state.pending.clear()
        self._state.active_message_id = None
        self._state.displayed_count = 0
        self._drained.set()
        self._cancel_timer()

    # ── Internals ────────────────────────────────────────────────

    async def _wait_drained(self) -> None:
        while self._state.pending:
            self._drained.clear()
            await self._drained.wait()

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self.tick()
            if not self._state.pending and self._state.active_message_id is None:
                break

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def _notify(self, message: Message) -> None:
        if self._on_update is None:
            return
        try:
            self._on_update(message)
        except Exception:
            logger.exception("Buffer update listener failed")
