"""Task schemas for the to-do API."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class Priority(StrEnum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


def _check_title(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(message)
    return value.strip()


def _check_priority(value: Any) -> Any:
    if value is not None and value not in {p.value for p in Priority}:
        raise ValueError("Priority must be one of: low, medium, high")
    return value


class Task(BaseModel):
    """A to-do item. Subtasks point at their parent through ``parent_id``."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    completed: bool = False
    priority: Priority = Priority.MEDIUM
    due_date: str | None = None
    parent_id: str | None = None
    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)


class CreateTaskRequest(BaseModel):
    """Body of ``POST /api/tasks``."""

    title: str = Field(default="", validate_default=True)
    priority: Priority = Priority.MEDIUM
    due_date: str | None = None
    parent_id: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title_not_blank(cls, value: Any) -> str:
        return _check_title(value, "Title is required and must be a non-empty string")

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, value: Any) -> Any:
        return Priority.MEDIUM if value in (None, "") else _check_priority(value)


class UpdateTaskRequest(BaseModel):
    """Body of ``PATCH /api/tasks/{id}``. Only fields that are set are applied."""

    completed: bool | None = None
    title: str | None = None
    priority: Priority | None = None
    due_date: str | None = None

    @field_validator("title", mode="before")
    @classmethod
    def _title_not_blank(cls, value: Any) -> str | None:
        if value is None:
            return value
        return _check_title(value, "Title must be a non-empty string")

    @field_validator("priority", mode="before")
    @classmethod
    def _known_priority(cls, value: Any) -> Any:
        return _check_priority(value)

    def changes(self) -> dict[str, Any]:
        """Fields explicitly present in the request body."""
        return self.model_dump(mode="json", exclude_unset=True)


class BreakdownRequest(BaseModel):
    """Body of ``POST /api/tasks/breakdown``."""

    model_config = ConfigDict(populate_by_name=True)

    task_id: str = Field(alias="taskId")
    task_title: str = Field(alias="taskTitle")

    @field_validator("task_id", mode="before")
    @classmethod
    def _task_id_given(cls, value: Any) -> str:
        return _check_title(value, "taskId is required and must be a string")

    @field_validator("task_title", mode="before")
    @classmethod
    def _task_title_given(cls, value: Any) -> str:
        return _check_title(value, "taskTitle is required and must be a string")


class OptimizeRequest(BaseModel):
    """Body of ``POST /api/prompts/optimize``."""

    model_config = ConfigDict(populate_by_name=True)

    user_prompt: str = Field(alias="userPrompt")

    @field_validator("user_prompt", mode="before")
    @classmethod
    def _prompt_not_blank(cls, value: Any) -> str:
        return _check_title(value, "userPrompt is required and must be a non-empty string")


class ApiResponse(BaseModel, Generic[T]):
    """Envelope for every JSON response of the task API."""

    success: bool
    data: T | None = None
    error: str | None = None
