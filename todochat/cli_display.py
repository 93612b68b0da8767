"""Rich rendering for the terminal chat.

While a reply streams, a transient ``Live`` region shows the assistant
message typing out with a cursor. Once the turn settles the final message,
its token stats and any error are printed permanently.
"""

from __future__ import annotations

from rich.console import Console, Group, RenderableType
from rich.panel import Panel
from rich.text import Text

from todochat.chat.session import ChatSession
from todochat.schemas.chat import ChatStatus
from todochat.schemas.messages import Message, Role, TokenStats

BRAND = {
    "user": "#00ffbb",
    "assistant": "#00ff88",
    "dim": "#6a8a6a",
    "amber": "#ffaa00",
    "red": "#ff4444",
}

CURSOR = "▌"


def render_stats(stats: TokenStats) -> Text:
    """One dim line of token counts and costs; absent values are skipped."""
    parts = []
    if stats.input_tokens is not None:
        parts.append(f"in {stats.input_tokens}")
    if stats.output_tokens is not None:
        parts.append(f"out {stats.output_tokens}")
    if stats.total_tokens is not None:
        parts.append(f"total {stats.total_tokens} tokens")
    cost = stats.total_cost or stats.input_cost
    if cost is not None:
        parts.append(f"cost {cost}")
    return Text("  " + " · ".join(parts), style=BRAND["dim"])


def render_message(message: Message, *, cancelled: bool = False) -> RenderableType:
    """Render one transcript message as a labelled block."""
    is_user = message.role is Role.USER
    label = "you" if is_user else "assistant"
    color = BRAND["user"] if is_user else BRAND["assistant"]

    body = Text(message.content)
    if message.is_streaming:
        body.append(CURSOR, style=f"bold {color}")
    elif cancelled:
        body.append(" [cancelled]", style=BRAND["amber"])

    header = Text(f"{label} ›", style=f"bold {color}")
    if message.stats is not None and not message.is_streaming:
        return Group(header, body, render_stats(message.stats))
    return Group(header, body)


def render_error(error: str) -> Panel:
    return Panel(
        Text(error, style=BRAND["red"]),
        title=f"[bold {BRAND['red']}]Error[/bold {BRAND['red']}]",
        border_style=BRAND["red"],
    )


class TurnView:
    """Live renderable for the assistant reply of the turn in flight."""

    def __init__(self, session: ChatSession, message_id: str | None = None) -> None:
        self._session = session
        self.message_id = message_id

    def __rich__(self) -> RenderableType:
        message = self._session.transcript.get(self.message_id or "")
        if message is None:
            return Text("")
        if self._session.status is ChatStatus.SUBMITTED and not message.content:
            return Group(
                Text("assistant ›", style=f"bold {BRAND['assistant']}"),
                Text("thinking...", style=BRAND["dim"]),
            )
        return render_message(message)


def print_turn_result(
    console: Console, session: ChatSession, message_id: str | None, *, cancelled: bool = False,
) -> None:
    """Print the settled assistant message and any error, then dismiss it."""
    message = session.transcript.get(message_id or "")
    if message is not None and (message.content or not session.error):
        console.print(render_message(message, cancelled=cancelled))
    if session.error:
        console.print(render_error(session.error))
        session.dismiss_error()
    console.print()
