"""Tests for the terminal chat rendering helpers."""

from __future__ import annotations

from rich.console import Console

from todochat.chat.session import ChatSession
from todochat.cli_display import (
    CURSOR,
    TurnView,
    print_turn_result,
    render_message,
    render_stats,
)
from todochat.schemas.chat import ChatStatus
from todochat.schemas.messages import Message, Role, TokenStats


def _console() -> Console:
    return Console(record=True, width=100, color_system=None)


def _text(renderable) -> str:
    console = _console()
    console.print(renderable)
    return console.export_text()


class _NoReader:
    async def events(self, payload):
        return
        yield


class TestRenderStats:
    def test_full_stats(self):
        stats = TokenStats(input_tokens=10, output_tokens=5, total_tokens=15, total_cost="0.000035")
        assert render_stats(stats).plain == "  in 10 · out 5 · total 15 tokens · cost 0.000035"

    def test_start_only(self):
        stats = TokenStats(input_tokens=10, input_cost="0.000020")
        assert render_stats(stats).plain == "  in 10 · cost 0.000020"


class TestRenderMessage:
    def test_streaming_shows_cursor(self):
        message = Message(role=Role.ASSISTANT, content="Typing", is_streaming=True)
        assert f"Typing{CURSOR}" in _text(render_message(message))

    def test_cancelled_marker(self):
        message = Message(role=Role.ASSISTANT, content="Partial")
        assert "Partial [cancelled]" in _text(render_message(message, cancelled=True))

    def test_stats_line(self):
        message = Message(
            role=Role.ASSISTANT, content="Done", stats=TokenStats(total_tokens=7),
        )
        output = _text(render_message(message))
        assert "assistant ›" in output
        assert "total 7 tokens" in output

    def test_user_label(self):
        assert "you ›" in _text(render_message(Message(role=Role.USER, content="hi")))


class TestTurnView:
    def test_thinking_before_first_character(self):
        session = ChatSession(_NoReader())
        message = session.transcript.append(
            Message(role=Role.ASSISTANT, content="", is_streaming=True)
        )
        session._status = ChatStatus.SUBMITTED

        assert "thinking..." in _text(TurnView(session, message.id))

    def test_unknown_message_renders_nothing(self):
        assert _text(TurnView(ChatSession(_NoReader()), "missing")).strip() == ""


class TestPrintTurnResult:
    def test_prints_error_and_dismisses(self):
        session = ChatSession(_NoReader())
        session._fail("HTTP error! status: 502")
        console = _console()

        print_turn_result(console, session, None)

        assert "HTTP error! status: 502" in console.export_text()
        assert session.status is ChatStatus.IDLE
        assert session.error is None
