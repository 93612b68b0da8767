"""Tests for todochat.streaming.buffer — typing-effect BufferController."""

from __future__ import annotations

import asyncio
import logging

import pytest

from todochat.chat.transcript import Transcript
from todochat.schemas.messages import Message, Role
from todochat.streaming.buffer import BufferController

# ── Helpers ───────────────────────────────────────────────────


def _setup(**kwargs) -> tuple[Transcript, Message, BufferController]:
    transcript = Transcript()
    message = transcript.append(Message(role=Role.ASSISTANT, is_streaming=True))
    return transcript, message, BufferController(transcript, **kwargs)


# ── Manual ticking (no running loop) ──────────────────────────


class TestManualTicks:
    def test_reset_then_two_ticks(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("AB")

        assert buffer.pending_text == "AB"
        assert buffer.tick() is True
        assert buffer.tick() is True
        assert message.content == "AB"
        assert buffer.state.displayed_count == 2
        assert buffer.pending_text == ""

    def test_characters_drain_in_order(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("ab")
        buffer.enqueue("cd")
        buffer.tick()
        assert message.content == "a"
        while buffer.tick():
            pass
        assert message.content == "abcd"

    def test_no_timer_without_event_loop(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("x")
        assert buffer.running is False

    def test_enqueue_without_active_turn_is_ignored(self):
        _, _, buffer = _setup()
        buffer.enqueue("lost")
        assert buffer.pending_text == ""

    def test_enqueue_empty_string_is_ignored(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("")
        assert buffer.pending_text == ""

    def test_tick_on_empty_queue(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        assert buffer.tick() is False
        assert message.content == ""

    def test_stale_tick_after_stop_changes_nothing(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("abc")
        buffer.tick()
        buffer.stop()

        assert buffer.tick() is False
        assert message.content == "a"
        assert buffer.active_message_id is None
        assert buffer.state.displayed_count == 0

    def test_tick_after_message_removed(self):
        transcript, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("abc")
        transcript.clear()

        assert buffer.tick() is False
        assert buffer.pending_text == ""

    def test_reset_discards_previous_turn(self):
        transcript, first, buffer = _setup()
        buffer.reset(first.id)
        buffer.enqueue("old")
        buffer.tick()

        second = transcript.append(Message(role=Role.ASSISTANT, is_streaming=True))
        buffer.reset(second.id)
        assert buffer.pending_text == ""
        assert buffer.state.displayed_count == 0

        buffer.enqueue("new")
        while buffer.tick():
            pass
        assert first.content == "o"
        assert second.content == "new"

    def test_displayed_never_exceeds_received(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("hey")
        for _ in range(10):
            buffer.tick()
        assert buffer.state.displayed_count == 3
        assert message.content == "hey"

    def test_flush_reveals_everything(self):
        _, message, buffer = _setup()
        buffer.reset(message.id)
        buffer.enqueue("hello")
        buffer.tick()
        assert buffer.flush() == 4
        assert message.content == "hello"
        assert buffer.state.displayed_count == 5


class TestUpdateListener:
    def test_listener_called_per_tick(self):
        seen: list[str] = []
        _, message, buffer = _setup(on_update=lambda m: seen.append(m.content))
        buffer.reset(message.id)
        buffer.enqueue("ab")
        buffer.tick()
        buffer.tick()
        assert seen == ["a", "ab"]

    def test_listener_exception_is_logged(self, caplog):
        def _boom(message):
            raise RuntimeError("listener broke")

        _, message, buffer = _setup(on_update=_boom)
        buffer.reset(message.id)
        buffer.enqueue("a")
        with caplog.at_level(logging.ERROR, logger="todochat.streaming.buffer"):
            assert buffer.tick() is True
        assert message.content == "a"
        assert "listener failed" in caplog.text


# ── Timer and finalize (running loop) ─────────────────────────


class TestTimer:
    @pytest.mark.asyncio()
    async def test_timer_drains_queue(self):
        _, message, buffer = _setup(tick_interval=0.001)
        buffer.reset(message.id)
        buffer.enqueue("typed")
        assert buffer.running is True

        for _ in range(200):
            if message.content == "typed":
                break
            await asyncio.sleep(0.005)
        assert message.content == "typed"
        buffer.stop()

    @pytest.mark.asyncio()
    async def test_ensure_running_is_idempotent(self):
        _, message, buffer = _setup(tick_interval=0.01)
        buffer.reset(message.id)
        buffer.enqueue("a")
        timer = buffer._timer
        buffer.ensure_running()
        buffer.enqueue("b")
        assert buffer._timer is timer
        buffer.stop()

    @pytest.mark.asyncio()
    async def test_stop_cancels_timer(self):
        _, message, buffer = _setup(tick_interval=0.01)
        buffer.reset(message.id)
        buffer.enqueue("abcdef")
        buffer.stop()
        await asyncio.sleep(0.05)
        assert buffer.running is False
        assert message.content == ""


class TestFinalize:
    @pytest.mark.asyncio()
    async def test_finalize_waits_for_drain(self):
        _, message, buffer = _setup(tick_interval=0.001)
        buffer.reset(message.id)
        buffer.enqueue("Hi there!")

        assert await buffer.finalize() is True
        assert message.content == "Hi there!"
        assert message.is_streaming is False
        assert buffer.active_message_id is None
        assert buffer.running is False

    @pytest.mark.asyncio()
    async def test_finalize_with_empty_queue(self):
        _, message, buffer = _setup(tick_interval=0.001)
        buffer.reset(message.id)
        assert await buffer.finalize() is True
        assert message.is_streaming is False

    @pytest.mark.asyncio()
    async def test_finalize_without_turn(self):
        _, message, buffer = _setup()
        assert await buffer.finalize() is True
        assert message.is_streaming is True

    @pytest.mark.asyncio()
    async def test_stalled_timer_is_force_flushed(self, caplog):
        _, message, buffer = _setup(tick_interval=100.0, drain_timeout=0.05)
        buffer.reset(message.id)
        buffer.enqueue("x" * 50)

        with caplog.at_level(logging.WARNING, logger="todochat.streaming.buffer"):
            drained = await buffer.finalize()

        assert drained is False
        assert message.content == "x" * 50
        assert message.is_streaming is False
        assert buffer.running is False
        assert "timed out" in caplog.text

    @pytest.mark.asyncio()
    async def test_stop_during_finalize_abandons_turn(self):
        _, message, buffer = _setup(tick_interval=100.0, drain_timeout=5.0)
        buffer.reset(message.id)
        buffer.enqueue("never shown")

        finalize = asyncio.create_task(buffer.finalize())
        await asyncio.sleep(0.01)
        buffer.stop()
        await asyncio.wait_for(finalize, timeout=1.0)

        # The stopped turn is not completed by the stale finalize
        assert message.content == ""
        assert message.is_streaming is True
        assert buffer.active_message_id is None
