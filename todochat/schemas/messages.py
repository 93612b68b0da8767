"""Conversation message schemas.

Defines the transcript Message, its optional token/cost statistics, and the
role/content pair sent to the backend as conversation history.
"""

from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Role(StrEnum):
    """Author of a message in the conversation."""

    USER = "user"
    ASSISTANT = "assistant"


class TokenStats(BaseModel):
    """Token counts and costs reported by the backend for one turn.

    Field names are camelCase on the wire (``inputTokens``) and snake_case
    in Python. Costs stay decimal strings exactly as the backend formats them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    input_tokens: int | None = Field(default=None, ge=0, description="Prompt tokens")
    output_tokens: int | None = Field(default=None, ge=0, description="Completion tokens")
    total_tokens: int | None = Field(default=None, ge=0, description="Prompt + completion tokens")
    input_cost: str | None = Field(default=None, description="Prompt cost, fixed-point string")
    output_cost: str | None = Field(default=None, description="Completion cost, fixed-point string")
    total_cost: str | None = Field(default=None, description="Total cost, fixed-point string")

    def to_wire(self) -> dict:
        """Serialize with camelCase keys, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ChatTurn(BaseModel):
    """One role/content pair of the history sent to the model."""

    role: str = Field(description="Message role: 'user', 'assistant' or 'system'")
    content: str = Field(description="Message text")


class Message(BaseModel):
    """A single message in the conversation transcript.

    Only the assistant message of the turn in flight is ever mutated after
    creation: the buffer controller appends to ``content`` and orchestration
    flips ``is_streaming`` and attaches ``stats``.
    """

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Opaque message identifier",
    )
    role: Role = Field(description="Who wrote the message")
    content: str = Field(default="", description="Visible message text")
    is_streaming: bool = Field(
        default=False, description="True while the reply is still being typed out"
    )
    stats: TokenStats | None = Field(default=None, description="Token usage for the turn")

    def as_turn(self) -> ChatTurn:
        """Return the history entry for this message."""
        return ChatTurn(role=str(self.role), content=self.content)
