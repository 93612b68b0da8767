"""Tests for todochat.chat.events — ChatEventEmitter."""

from __future__ import annotations

import asyncio
import logging

import pytest

from todochat.chat.events import ChatEvent, ChatEventEmitter, ChatEventType


class TestChatEvent:
    def test_defaults(self):
        event = ChatEvent(type=ChatEventType.STATUS_CHANGED)
        assert event.timestamp > 0
        assert event.data == {}

    def test_serializes_type_as_string(self):
        event = ChatEvent(type=ChatEventType.ERROR, data={"error": "boom"})
        dumped = event.model_dump(mode="json")
        assert dumped["type"] == "error"
        assert dumped["data"] == {"error": "boom"}


class TestChatEventEmitter:
    def test_sync_listener_receives_event(self):
        emitter = ChatEventEmitter()
        received: list[ChatEvent] = []
        emitter.add_listener(received.append)

        event = emitter.emit(ChatEventType.MESSAGE_ADDED, message={"id": "m1"})

        assert received == [event]
        assert event.data["message"]["id"] == "m1"

    def test_remove_listener(self):
        emitter = ChatEventEmitter()
        received: list[ChatEvent] = []
        emitter.add_listener(received.append)
        emitter.remove_listener(received.append)
        emitter.emit(ChatEventType.ERROR, error="x")
        assert received == []

    def test_failing_listener_does_not_block_others(self, caplog):
        emitter = ChatEventEmitter()
        received: list[ChatEvent] = []

        def _bad(event):
            raise RuntimeError("bad listener")

        emitter.add_listener(_bad)
        emitter.add_listener(received.append)
        with caplog.at_level(logging.ERROR, logger="todochat.chat.events"):
            emitter.emit(ChatEventType.STATUS_CHANGED, status="ready")

        assert len(received) == 1
        assert "Event listener error" in caplog.text

    @pytest.mark.asyncio()
    async def test_async_listener_is_scheduled(self):
        emitter = ChatEventEmitter()
        received: list[str] = []

        async def _listener(event):
            received.append(event.data["status"])

        emitter.add_listener(_listener)
        emitter.emit(ChatEventType.STATUS_CHANGED, status="streaming")
        assert received == []
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert received == ["streaming"]

    def test_async_listener_without_loop_is_dropped(self, caplog):
        emitter = ChatEventEmitter()

        async def _listener(event):
            raise AssertionError("must not run")

        emitter.add_listener(_listener)
        with caplog.at_level(logging.WARNING, logger="todochat.chat.events"):
            emitter.emit(ChatEventType.ERROR, error="x")
        assert "no running event loop" in caplog.text
