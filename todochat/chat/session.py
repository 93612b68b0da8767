"""Chat session state machine.

Coordinates the stream reader (producer) with the buffer controller
(consumer) for one conversation:

    idle ──submit──▸ submitted ──first event──▸ streaming ──done──▸ ready
                         │                          │
                         └──────── cancel ──────────┴──▸ idle
                         └──── network / error ─────┴──▸ error ──dismiss──▸ idle

Cancellation always wins: once cancel() has run, no late event, timer tick
or pending drain can touch the cancelled message again.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from typing import Any

import httpx

from todochat.chat.events import ChatEventEmitter, ChatEventType
from todochat.chat.transcript import Transcript
from todochat.errors import ChatBusyError, StreamError
from todochat.schemas.chat import ChatStatus
from todochat.schemas.config import ChatConfig
from todochat.schemas.messages import ChatTurn, Message, Role, TokenStats
from todochat.schemas.streaming import ChunkEvent, DoneEvent, ErrorEvent, StartEvent
from todochat.streaming.buffer import BufferController
from todochat.streaming.reader import StreamReader

logger = logging.getLogger(__name__)


class ChatSession:
    """One conversation with the streaming chat backend.

    All mutation happens on the event loop thread: the turn task reading the
    stream, the buffer's tick timer, and the synchronous cancel()/clear()
    calls made by the UI interleave but never run in parallel.
    """

    def __init__(
        self,
        reader: StreamReader,
        *,
        config: ChatConfig | None = None,
        emitter: ChatEventEmitter | None = None,
    ) -> None:
        self._reader = reader
        self._config = config or ChatConfig()
        self._emitter = emitter or ChatEventEmitter()
        self.transcript = Transcript()
        self.buffer = BufferController(
            self.transcript,
            tick_interval=self._config.tick_interval,
            drain_timeout=self._config.drain_timeout,
            on_update=self._on_message_typed,
        )
        self._status = ChatStatus.IDLE
        self._error: str | None = None
        self._turn: asyncio.Task[None] | None = None
        self._assistant_id: str | None = None

    # ── Observable state ─────────────────────────────────────────

    @property
    def status(self) -> ChatStatus:
        return self._status

    @property
    def error(self) -> str | None:
        """Message of the last failure, until dismissed or a new submit."""
        return self._error

    @property
    def emitter(self) -> ChatEventEmitter:
        return self._emitter

    @property
    def accepts_input(self) -> bool:
        """Whether the UI should enable the input box."""
        return not self._status.in_flight

    @property
    def current_turn(self) -> asyncio.Task[None] | None:
        return self._turn

    # ── Commands ─────────────────────────────────────────────────

    def submit(self, text: str) -> asyncio.Task[None]:
        """Start a turn for ``text`` and return the task running it.

        Must be called from inside a running event loop.

        Raises:
            ValueError: If ``text`` is blank.
            ChatBusyError: If a turn is already in flight.
        """
        text = text.strip()
        if not text:
            raise ValueError("Cannot submit an empty message")
        if self._status.in_flight:
            raise ChatBusyError("A reply is still streaming; cancel it first")

        history = [*self.transcript.history(), ChatTurn(role=str(Role.USER), content=text)]
        user = self.transcript.append(Message(role=Role.USER, content=text))
        assistant = self.transcript.append(
            Message(role=Role.ASSISTANT, content="", is_streaming=True)
        )
        self._assistant_id = assistant.id
        self._emitter.emit(ChatEventType.MESSAGE_ADDED, message=user.model_dump())
        self._emitter.emit(ChatEventType.MESSAGE_ADDED, message=assistant.model_dump())

        self._error = None
        self._set_status(ChatStatus.SUBMITTED)

        payload = {"messages": [turn.model_dump() for turn in history]}
        self._turn = asyncio.get_running_loop().create_task(
            self._run_turn(assistant.id, payload), name=f"chat-turn-{assistant.id[:8]}",
        )
        return self._turn

    async def send(self, text: str) -> Message | None:
        """Submit ``text``, wait for the turn to settle, return the reply message."""
        self.submit(text)
        message_id = self._assistant_id or ""
        await self.wait()
        return self.transcript.get(message_id)

    def cancel(self) -> bool:
        """Abort the turn in flight. Returns False if there was none.

        The assistant message keeps whatever was already displayed, stops
        streaming immediately, and the session returns to ``idle``. The
        cancellation is never reported as an error.
        """
        if not self._status.in_flight:
            return False

        turn = self._turn
        self._abandon_turn()
        self._set_status(ChatStatus.IDLE)
        if turn is not None and not turn.done():
            turn.cancel()
        logger.debug("Turn cancelled by user")
        return True

    def dismiss_error(self) -> None:
        """Clear the error banner and return to ``idle``."""
        if self._status is not ChatStatus.ERROR:
            return
        self._error = None
        self._set_status(ChatStatus.IDLE)

    def clear(self) -> None:
        """Remove every message from the conversation.

        Raises:
            ChatBusyError: If a turn is in flight.
        """
        if self._status.in_flight:
            raise ChatBusyError("Cannot clear the conversation while a reply is streaming")
        self.transcript.clear()
        self._assistant_id = None
        self._error = None
        self._emitter.emit(ChatEventType.TRANSCRIPT_CLEARED)
        self._set_status(ChatStatus.IDLE)

    async def wait(self) -> None:
        """Wait for the current turn to settle, whether it finished or was cancelled."""
        turn = self._turn
        if turn is not None and not turn.done():
            await asyncio.wait([turn])

    # ── Turn task ────────────────────────────────────────────────

    async def _run_turn(self, message_id: str, payload: dict[str, Any]) -> None:
        try:
            async with aclosing(self._reader.events(payload)) as events:
                async for event in events:
                    if self._assistant_id != message_id:
                        return
                    if self._status is ChatStatus.SUBMITTED:
                        self.buffer.reset(message_id)
                        self._set_status(ChatStatus.STREAMING)

                    if isinstance(event, ChunkEvent):
                        self.buffer.enqueue(event.content)
                    elif isinstance(event, StartEvent):
                        if event.stats is not None:
                            self._attach_stats(message_id, event.stats)
                    elif isinstance(event, DoneEvent):
                        if event.stats is not None:
                            self._attach_stats(message_id, event.stats)
                        await self._complete(message_id)
                        return
                    elif isinstance(event, ErrorEvent):
                        self._fail(event.error)
                        return

            # Stream closed without a done record
            logger.debug("Stream ended without done event; finalizing")
            await self._complete(message_id)
        except asyncio.CancelledError:
            # cancel() has normally cleaned up already; this covers loop shutdown
            if self._assistant_id == message_id and self._status.in_flight:
                self._abandon_turn()
                self._set_status(ChatStatus.IDLE)
            raise
        except (httpx.HTTPError, StreamError) as e:
            logger.warning("Chat stream failed: %s", e)
            self._fail(str(e) or type(e).__name__)
        except Exception as e:
            logger.exception("Chat turn failed unexpectedly")
            self._fail(str(e) or type(e).__name__)

    async def _complete(self, message_id: str) -> None:
        await self.buffer.finalize()
        if self._assistant_id != message_id or not self._status.in_flight:
            return
        message = self.transcript.get(message_id)
        if message is not None and message.is_streaming:
            # The stream closed before any event opened the buffer
            message.is_streaming = False
            self._emitter.emit(ChatEventType.MESSAGE_UPDATED, message=message.model_dump())
        self._set_status(ChatStatus.READY)

    # ── State helpers ────────────────────────────────────────────

    def _fail(self, error: str) -> None:
        self._abandon_turn()
        self._error = error
        self._emitter.emit(ChatEventType.ERROR, error=error)
        self._set_status(ChatStatus.ERROR)

    def _abandon_turn(self) -> None:
        """Stop typing and mark the in-flight assistant message finished."""
        self.buffer.stop()
        message = self.transcript.get(self._assistant_id or "")
        if message is not None and message.is_streaming:
            message.is_streaming = False
            self._emitter.emit(ChatEventType.MESSAGE_UPDATED, message=message.model_dump())

    def _attach_stats(self, message_id: str, stats: TokenStats) -> None:
        message = self.transcript.get(message_id)
        if message is None:
            return
        message.stats = stats
        self._emitter.emit(ChatEventType.MESSAGE_UPDATED, message=message.model_dump())

    def _set_status(self, status: ChatStatus) -> None:
        if status is self._status:
            return
        previous, self._status = self._status, status
        logger.debug("Chat status %s -> %s", previous, status)
        self._emitter.emit(
            ChatEventType.STATUS_CHANGED, previous=str(previous), status=str(status),
        )

    def _on_message_typed(self, message: Message) -> None:
        self._emitter.emit(ChatEventType.MESSAGE_UPDATED, message=message.model_dump())
