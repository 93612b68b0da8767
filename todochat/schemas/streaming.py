"""Stream event schemas for the chat SSE protocol.

Each ``data:`` record on the wire decodes to exactly one of the events
below, discriminated by its ``type`` field.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

from todochat.schemas.messages import TokenStats


class StreamEventType(StrEnum):
    """Values of the ``type`` field of a stream record."""

    START = "start"
    CHUNK = "chunk"
    DONE = "done"
    ERROR = "error"


class StartEvent(BaseModel):
    """The backend accepted the request and is about to generate."""

    type: Literal["start"] = "start"
    message: str | None = Field(default=None, description="Human-readable status text")
    stats: TokenStats | None = Field(default=None, description="Input token stats")


class ChunkEvent(BaseModel):
    """A piece of generated text."""

    type: Literal["chunk"] = "chunk"
    content: str = Field(description="Incremental text content")


class DoneEvent(BaseModel):
    """Generation finished; carries the final usage stats."""

    type: Literal["done"] = "done"
    message: str | None = Field(default=None, description="Human-readable status text")
    stats: TokenStats | None = Field(default=None, description="Final token stats")


class ErrorEvent(BaseModel):
    """The backend failed while producing the response."""

    type: Literal["error"] = "error"
    error: str = Field(default="Unknown error", description="Error message")


StreamEvent = Annotated[
    StartEvent | ChunkEvent | DoneEvent | ErrorEvent,
    Field(discriminator="type"),
]

_EVENT_ADAPTER: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_stream_event(data: Any) -> StreamEvent:
    """Classify a decoded JSON payload into a StreamEvent.

    Raises:
        pydantic.ValidationError: If the payload has no known ``type`` or
            its fields do not match that type.
    """
    return _EVENT_ADAPTER.validate_python(data)


def event_to_wire(event: StartEvent | ChunkEvent | DoneEvent | ErrorEvent) -> dict[str, Any]:
    """Serialize an event to its JSON wire shape (camelCase stats, no nulls)."""
    return event.model_dump(by_alias=True, exclude_none=True)
