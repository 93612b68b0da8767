"""Tests for todochat.chat.transcript — Transcript."""

from __future__ import annotations

from todochat.chat.transcript import Transcript
from todochat.schemas.messages import ChatTurn, Message, Role


def _transcript(*messages: Message) -> Transcript:
    transcript = Transcript()
    for message in messages:
        transcript.append(message)
    return transcript


class TestTranscript:
    def test_append_keeps_order(self):
        a = Message(role=Role.USER, content="a")
        b = Message(role=Role.ASSISTANT, content="b")
        transcript = _transcript(a, b)
        assert transcript.messages == [a, b]
        assert transcript.last is b
        assert len(transcript) == 2

    def test_get_by_id(self):
        a = Message(role=Role.USER, content="a")
        transcript = _transcript(a)
        assert transcript.get(a.id) is a
        assert transcript.get("missing") is None

    def test_messages_is_a_snapshot(self):
        transcript = _transcript(Message(role=Role.USER, content="a"))
        snapshot = transcript.messages
        snapshot.clear()
        assert len(transcript) == 1

    def test_clear(self):
        transcript = _transcript(Message(role=Role.USER, content="a"))
        transcript.clear()
        assert len(transcript) == 0
        assert transcript.last is None

    def test_history_skips_streaming_and_empty_replies(self):
        transcript = _transcript(
            Message(role=Role.USER, content="q1"),
            Message(role=Role.ASSISTANT, content="a1"),
            Message(role=Role.USER, content="q2"),
            Message(role=Role.ASSISTANT, content=""),
            Message(role=Role.USER, content="q3"),
            Message(role=Role.ASSISTANT, content="typing", is_streaming=True),
        )
        assert transcript.history() == [
            ChatTurn(role="user", content="q1"),
            ChatTurn(role="assistant", content="a1"),
            ChatTurn(role="user", content="q2"),
            ChatTurn(role="user", content="q3"),
        ]
