"""HTTP backend: SSE chat stream and task API."""

from todochat.server.app import chat_event_stream, create_app

__all__ = ["chat_event_stream", "create_app"]
