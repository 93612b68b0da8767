"""Ordered conversation transcript."""

from __future__ import annotations

from collections.abc import Iterator

from todochat.schemas.messages import ChatTurn, Message, Role


class Transcript:
    """Append-only list of messages, cleared only by an explicit clear().

    The single assistant message being streamed is mutated in place by the
    buffer controller; every other message is immutable once appended.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the messages in order."""
        return list(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def get(self, message_id: str) -> Message | None:
        """Look up a message by id, newest first."""
        for message in reversed(self._messages):
            if message.id == message_id:
                return message
        return None

    def history(self) -> list[ChatTurn]:
        """Completed messages as model history.

        Streaming placeholders and assistant replies that never received any
        content (e.g. cancelled before the first chunk) are left out.
        """
        return [
            m.as_turn()
            for m in self._messages
            if m.role is Role.USER or (not m.is_streaming and m.content)
        ]

    def clear(self) -> None:
        self._messages.clear()
