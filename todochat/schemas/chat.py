"""Chat session lifecycle schemas."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from todochat.schemas.messages import ChatTurn


class ChatStatus(StrEnum):
    """Observable state of a chat session.

    ``idle`` and ``ready`` accept input; ``submitted`` and ``streaming``
    mean a turn is in flight; ``error`` holds a dismissible error.
    """

    IDLE = "idle"
    SUBMITTED = "submitted"
    STREAMING = "streaming"
    READY = "ready"
    ERROR = "error"

    @property
    def in_flight(self) -> bool:
        return self in (ChatStatus.SUBMITTED, ChatStatus.STREAMING)


class ChatStreamRequest(BaseModel):
    """Body of ``POST /api/chat/stream``.

    Either the full ``messages`` history or a single ``prompt`` string.
    """

    messages: list[ChatTurn] = Field(default_factory=list)
    prompt: str | None = None

    @model_validator(mode="after")
    def _has_input(self) -> ChatStreamRequest:
        if not self.messages and not (self.prompt and self.prompt.strip()):
            raise ValueError("messages is required and must be a non-empty array")
        return self

    def turns(self) -> list[ChatTurn]:
        """The conversation to send to the model."""
        if self.messages:
            return list(self.messages)
        return [ChatTurn(role="user", content=(self.prompt or "").strip())]
