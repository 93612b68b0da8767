"""Task storage and AI-assisted task breakdown."""

from todochat.tasks.breakdown import build_breakdown_prompt, parse_subtasks
from todochat.tasks.store import (
    InMemoryTaskStore,
    SupabaseTaskStore,
    TaskStore,
    create_task_store,
)

__all__ = [
    "InMemoryTaskStore",
    "SupabaseTaskStore",
    "TaskStore",
    "build_breakdown_prompt",
    "create_task_store",
    "parse_subtasks",
]
