"""Exception hierarchy for todochat.

Network and stream failures are raised from the streaming layer and caught
only by chat orchestration, which turns them into the ``error`` state.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base class for chat-layer errors."""


class ChatBusyError(ChatError):
    """Raised when an action needs an idle session but a turn is in flight."""


class StreamError(ChatError):
    """The response stream could not be read to completion."""


class StreamHTTPError(StreamError):
    """The backend answered the stream request with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP error! status: {status_code}")


class ProviderError(RuntimeError):
    """A language-model call failed after all retries."""


class TaskStoreError(RuntimeError):
    """The task store rejected or failed an operation."""


class TaskNotFoundError(TaskStoreError):
    """No task exists with the requested id."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class SubtaskParseError(ValueError):
    """The model's answer did not contain a usable list of subtasks."""
