"""Task persistence.

``TaskStore`` is the collaborator behind the task API. The in-memory store is
the default for local runs and tests; the Supabase store keeps tasks in the
hosted ``tasks`` table, where ``parent_id`` cascades deletes to subtasks.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Any

from supabase import Client, create_client

from todochat.errors import TaskNotFoundError, TaskStoreError
from todochat.keys import SUPABASE_KEY_ENV, SUPABASE_URL_ENV
from todochat.schemas.config import TaskStoreKind
from todochat.schemas.tasks import CreateTaskRequest, Task, UpdateTaskRequest, utc_now

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"


class TaskStore(ABC):
    """Storage interface for tasks and their subtasks."""

    @abstractmethod
    def list(self) -> list[Task]:
        """Return every task, newest first."""

    @abstractmethod
    def get(self, task_id: str) -> Task:
        """Return one task.

        Raises:
            TaskNotFoundError: If no task has ``task_id``.
        """

    @abstractmethod
    def create_many(self, requests: list[CreateTaskRequest]) -> list[Task]:
        """Insert several tasks at once and return them as stored."""

    @abstractmethod
    def update(self, task_id: str, request: UpdateTaskRequest) -> Task:
        """Apply the fields set on ``request`` and bump ``updated_at``.

        Raises:
            TaskNotFoundError: If no task has ``task_id``.
        """

    @abstractmethod
    def delete(self, task_id: str) -> Task:
        """Delete a task together with its subtasks and return it.

        Raises:
            TaskNotFoundError: If no task has ``task_id``.
        """

    def create(self, request: CreateTaskRequest) -> Task:
        return self.create_many([request])[0]


def _new_task(request: CreateTaskRequest) -> Task:
    now = utc_now()
    return Task(
        title=request.title,
        priority=request.priority,
        due_date=request.due_date or None,
        parent_id=request.parent_id or None,
        created_at=now,
        updated_at=now,
    )


class InMemoryTaskStore(TaskStore):
    """Process-local store. Safe to share between request threads."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._lock = threading.Lock()

    def list(self) -> list[Task]:
        with self._lock:
            tasks = list(self._tasks.values())
        # Later insertions win ties between equal timestamps
        ordered = sorted(enumerate(tasks), key=lambda p: (p[1].created_at, p[0]), reverse=True)
        return [task.model_copy() for _, task in ordered]

    def get(self, task_id: str) -> Task:
        with self._lock:
            task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task.model_copy()

    def create_many(self, requests: list[CreateTaskRequest]) -> list[Task]:
        created = [_new_task(r) for r in requests]
        with self._lock:
            for task in created:
                if task.parent_id and task.parent_id not in self._tasks:
                    raise TaskNotFoundError(task.parent_id)
            for task in created:
                self._tasks[task.id] = task
        return [t.model_copy() for t in created]

    def update(self, task_id: str, request: UpdateTaskRequest) -> Task:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise TaskNotFoundError(task_id)
            updated = Task.model_validate(
                {**task.model_dump(), **request.changes(), "updated_at": utc_now()}
            )
            self._tasks[task_id] = updated
        return updated.model_copy()

    def delete(self, task_id: str) -> Task:
        with self._lock:
            if task_id not in self._tasks:
                raise TaskNotFoundError(task_id)
            doomed = {task_id}
            # Walk down until no task has a doomed parent
            while True:
                children = {
                    t.id for t in self._tasks.values()
                    if t.parent_id in doomed and t.id not in doomed
                }
                if not children:
                    break
                doomed |= children
            removed = self._tasks[task_id]
            for doomed_id in doomed:
                del self._tasks[doomed_id]
        logger.debug("Deleted task %s with %d subtasks", task_id, len(doomed) - 1)
        return removed


class SupabaseTaskStore(TaskStore):
    """Tasks stored in the Supabase ``tasks`` table.

    The client is created lazily from ``SUPABASE_URL`` / ``SUPABASE_KEY``
    unless one is passed in.
    """

    def __init__(self, client: Client | None = None) -> None:
        self._client = client

    def _sb(self) -> Client:
        if self._client is None:
            url = os.environ.get(SUPABASE_URL_ENV, "")
            key = os.environ.get(SUPABASE_KEY_ENV, "")
            if not url or not key:
                raise TaskStoreError(
                    f"Supabase is not configured; set {SUPABASE_URL_ENV} and {SUPABASE_KEY_ENV}"
                )
            self._client = create_client(url, key)
        return self._client

    def _execute(self, query: Any, action: str) -> list[dict[str, Any]]:
        try:
            response = query.execute()
        except Exception as e:
            logger.error("Supabase %s failed: %s", action, e)
            raise TaskStoreError(f"Failed to {action}: {e}") from e
        return response.data or []

    def list(self) -> list[Task]:
        rows = self._execute(
            self._sb().table(TASKS_TABLE).select("*").order("created_at", desc=True),
            "fetch tasks",
        )
        return [Task.model_validate(row) for row in rows]

    def get(self, task_id: str) -> Task:
        rows = self._execute(
            self._sb().table(TASKS_TABLE).select("*").eq("id", task_id).limit(1),
            "fetch task",
        )
        if not rows:
            raise TaskNotFoundError(task_id)
        return Task.model_validate(rows[0])

    def create_many(self, requests: list[CreateTaskRequest]) -> list[Task]:
        rows = [_new_task(r).model_dump(mode="json", exclude={"id"}) for r in requests]
        created = self._execute(self._sb().table(TASKS_TABLE).insert(rows), "create task")
        return [Task.model_validate(row) for row in created]

    def update(self, task_id: str, request: UpdateTaskRequest) -> Task:
        changes = {**request.changes(), "updated_at": utc_now()}
        rows = self._execute(
            self._sb().table(TASKS_TABLE).update(changes).eq("id", task_id),
            "update task",
        )
        if not rows:
            raise TaskNotFoundError(task_id)
        return Task.model_validate(rows[0])

    def delete(self, task_id: str) -> Task:
        # Subtasks go with the parent through ON DELETE CASCADE
        rows = self._execute(
            self._sb().table(TASKS_TABLE).delete().eq("id", task_id),
            "delete task",
        )
        if not rows:
            raise TaskNotFoundError(task_id)
        return Task.model_validate(rows[0])


def create_task_store(kind: TaskStoreKind) -> TaskStore:
    """Build the store selected by ``[server] task_store``."""
    if kind is TaskStoreKind.SUPABASE:
        return SupabaseTaskStore()
    return InMemoryTaskStore()
