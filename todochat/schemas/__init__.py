"""todochat schema definitions.

All Pydantic v2 models shared by the chat client, the SSE backend and the
task API.
"""

from todochat.schemas.chat import ChatStatus, ChatStreamRequest
from todochat.schemas.config import (
    AppConfig,
    ChatConfig,
    ModelConfig,
    RetryConfig,
    ServerConfig,
    TaskStoreKind,
)
from todochat.schemas.messages import ChatTurn, Message, Role, TokenStats
from todochat.schemas.streaming import (
    ChunkEvent,
    DoneEvent,
    ErrorEvent,
    StartEvent,
    StreamEvent,
    StreamEventType,
    event_to_wire,
    parse_stream_event,
)
from todochat.schemas.tasks import (
    ApiResponse,
    BreakdownRequest,
    CreateTaskRequest,
    OptimizeRequest,
    Priority,
    Task,
    UpdateTaskRequest,
)

__all__ = [
    "ApiResponse",
    "AppConfig",
    "BreakdownRequest",
    "ChatConfig",
    "ChatStatus",
    "ChatStreamRequest",
    "ChatTurn",
    "ChunkEvent",
    "CreateTaskRequest",
    "DoneEvent",
    "ErrorEvent",
    "Message",
    "ModelConfig",
    "OptimizeRequest",
    "Priority",
    "RetryConfig",
    "Role",
    "ServerConfig",
    "StartEvent",
    "StreamEvent",
    "StreamEventType",
    "Task",
    "TaskStoreKind",
    "TokenStats",
    "UpdateTaskRequest",
    "event_to_wire",
    "parse_stream_event",
]
