"""Client-side streaming: SSE record parsing, typing buffer, stream reader."""

from todochat.streaming.buffer import BufferController, BufferState
from todochat.streaming.parser import SSERecordParser, encode_event
from todochat.streaming.reader import StreamReader

__all__ = [
    "BufferController",
    "BufferState",
    "SSERecordParser",
    "StreamReader",
    "encode_event",
]
