"""FastAPI backend for todochat.

Serves the SSE chat stream consumed by :class:`todochat.chat.session.ChatSession`
and the JSON task API. Every JSON response uses the
``{"success": bool, "data"?: ..., "error"?: str}`` envelope.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from todochat import __version__
from todochat.errors import ProviderError, SubtaskParseError, TaskNotFoundError, TaskStoreError
from todochat.prompts import clean_model_output, render_meta_prompt
from todochat.providers.base import ChatProvider
from todochat.schemas.chat import ChatStreamRequest
from todochat.schemas.config import AppConfig
from todochat.schemas.messages import ChatTurn, TokenStats
from todochat.schemas.streaming import ChunkEvent, DoneEvent, ErrorEvent, StartEvent
from todochat.schemas.tasks import (
    ApiResponse,
    BreakdownRequest,
    CreateTaskRequest,
    OptimizeRequest,
    UpdateTaskRequest,
)
from todochat.streaming.parser import encode_event
from todochat.tasks.breakdown import build_breakdown_prompt, parse_subtasks
from todochat.tasks.store import InMemoryTaskStore, TaskStore

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

BREAKDOWN_TEMPERATURE = 0.7
BREAKDOWN_MAX_TOKENS = 500
OPTIMIZE_TEMPERATURE = 0.7
OPTIMIZE_MAX_TOKENS = 2000


class ApiError(Exception):
    """Route-level failure rendered as an error envelope."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def _fixed(cost: float) -> str:
    return f"{cost:.6f}"


def _envelope(status_code: int, data: Any = None, error: str | None = None) -> JSONResponse:
    body = ApiResponse[Any](success=error is None, data=data, error=error)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
    )


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    loc = tuple(first.get("loc", ()))
    if first.get("type") == "missing" and loc == ("body",):
        return "Request body cannot be empty"
    if first.get("type") == "missing" and loc:
        return f"{loc[-1]} is required"
    ctx = first.get("ctx") or {}
    if "error" in ctx:
        return str(ctx["error"])
    field = ".".join(str(part) for part in loc if part != "body")
    message = first.get("msg", "Invalid request")
    return f"{field}: {message}" if field else message


async def chat_event_stream(
    provider: ChatProvider, turns: list[ChatTurn],
) -> AsyncIterator[str]:
    """Generate the SSE records for one chat turn.

    Emits ``start`` once the model accepted the request, one ``chunk`` per
    non-empty delta and a closing ``done`` with token usage. Any failure
    becomes a single ``error`` record that ends the stream.
    """
    input_text = "\n".join(f"{turn.role}: {turn.content}" for turn in turns)
    input_tokens = provider.count_tokens(input_text)
    input_cost = provider.input_cost(input_tokens)
    output_text = ""
    chunk_count = 0

    try:
        deltas = await provider.stream_chat(turns)
        yield encode_event(StartEvent(
            message="Generating...",
            stats=TokenStats(input_tokens=input_tokens, input_cost=_fixed(input_cost)),
        ))
        async for delta in deltas:
            output_text += delta
            chunk_count += 1
            yield encode_event(ChunkEvent(content=delta))
    except ProviderError as e:
        logger.error("Chat stream failed to open: %s", e)
        yield encode_event(ErrorEvent(error=str(e)))
        return
    except Exception as e:
        logger.exception("Chat stream failed after %d chunks", chunk_count)
        status = getattr(e, "status_code", None)
        prefix = f"API error ({status})" if isinstance(status, int) else "API error"
        yield encode_event(ErrorEvent(error=f"{prefix}: {e}"))
        return

    output_tokens = provider.count_tokens(output_text)
    output_cost = provider.output_cost(output_tokens)
    logger.info(
        "Chat stream complete: %d chunks, %d input / %d output tokens",
        chunk_count, input_tokens, output_tokens,
    )
    yield encode_event(DoneEvent(
        message="Generation complete",
        stats=TokenStats(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            input_cost=_fixed(input_cost),
            output_cost=_fixed(output_cost),
            total_cost=_fixed(input_cost + output_cost),
        ),
    ))


def create_app(
    provider: ChatProvider,
    store: TaskStore | None = None,
    config: AppConfig | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        provider: Model provider answering chat, breakdown and optimize calls.
        store: Task store; defaults to a fresh in-memory store.
        config: Application config; defaults to the schema defaults.
    """
    config = config or AppConfig()
    store = store or InMemoryTaskStore()
    template_path = (
        Path(config.server.prompt_template).expanduser()
        if config.server.prompt_template else None
    )

    app = FastAPI(
        title="todochat",
        description="Streaming AI chat and task API",
        version=__version__,
    )
    app.state.provider = provider
    app.state.store = store
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error envelopes ──────────────────────────────────────────

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        return _envelope(exc.status_code, error=exc.message)

    @app.exception_handler(RequestValidationError)
    async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _envelope(400, error=_validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 405:
            return _envelope(405, error=f"Method {request.method} not allowed")
        return _envelope(exc.status_code, error=str(exc.detail))

    @app.exception_handler(TaskNotFoundError)
    async def _task_not_found(request: Request, exc: TaskNotFoundError) -> JSONResponse:
        return _envelope(404, error="Task not found")

    @app.exception_handler(TaskStoreError)
    async def _store_error(request: Request, exc: TaskStoreError) -> JSONResponse:
        return _envelope(500, error=str(exc))

    @app.exception_handler(ProviderError)
    async def _provider_error(request: Request, exc: ProviderError) -> JSONResponse:
        return _envelope(500, error=str(exc))

    @app.exception_handler(SubtaskParseError)
    async def _bad_subtasks(request: Request, exc: SubtaskParseError) -> JSONResponse:
        return _envelope(400, error=str(exc))

    def _require_api_key() -> None:
        if not provider.api_key:
            raise ApiError(500, "API Key is not configured")

    async def _ask(prompt: str, *, temperature: float, max_tokens: int) -> str:
        try:
            answer = await provider.complete(
                [ChatTurn(role="user", content=prompt)],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.exception("Model call failed")
            raise ProviderError(f"API error: {e}") from e
        if not answer.strip():
            raise ApiError(500, "AI did not return a valid response")
        return answer

    # ── Health ───────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__, "model": provider.model_id}

    # ── Chat stream ──────────────────────────────────────────────

    @app.post("/api/chat/stream")
    async def chat_stream(body: ChatStreamRequest) -> StreamingResponse:
        """Stream one assistant reply as server-sent events."""
        _require_api_key()
        return StreamingResponse(
            chat_event_stream(provider, body.turns()),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    # ── Tasks ────────────────────────────────────────────────────

    @app.get("/api/tasks")
    def list_tasks() -> JSONResponse:
        return _envelope(200, data=[t.model_dump() for t in store.list()])

    @app.post("/api/tasks")
    def create_task(body: CreateTaskRequest) -> JSONResponse:
        task = store.create(body)
        logger.info("Created task %s", task.id)
        return _envelope(201, data=task.model_dump())

    @app.patch("/api/tasks/{task_id}")
    def update_task(task_id: str, body: UpdateTaskRequest) -> JSONResponse:
        if not body.changes():
            raise ApiError(400, "Request body cannot be empty")
        return _envelope(200, data=store.update(task_id, body).model_dump())

    @app.delete("/api/tasks/{task_id}")
    def delete_task(task_id: str) -> JSONResponse:
        task = store.delete(task_id)
        logger.info("Deleted task %s", task_id)
        return _envelope(200, data=task.model_dump())

    @app.post("/api/tasks/breakdown")
    async def breakdown_task(body: BreakdownRequest) -> JSONResponse:
        """Split a task into 3-5 subtasks and store them as its children."""
        await run_in_threadpool(store.get, body.task_id)
        _require_api_key()

        answer = await _ask(
            build_breakdown_prompt(body.task_title),
            temperature=BREAKDOWN_TEMPERATURE,
            max_tokens=BREAKDOWN_MAX_TOKENS,
        )
        subtasks = parse_subtasks(answer)
        requests = [CreateTaskRequest(title=title, parent_id=body.task_id) for title in subtasks]
        created = await run_in_threadpool(store.create_many, requests)
        logger.info("Broke task %s into %d subtasks", body.task_id, len(created))
        return _envelope(201, data=[t.model_dump() for t in created])

    # ── Prompts ──────────────────────────────────────────────────

    @app.post("/api/prompts/optimize")
    async def optimize_prompt(body: OptimizeRequest) -> JSONResponse:
        """Rewrite a user prompt with the meta-prompt template."""
        _require_api_key()
        try:
            meta_prompt = render_meta_prompt(body.user_prompt, template_path)
        except OSError as e:
            logger.error("Failed to load meta-prompt template: %s", e)
            raise ApiError(500, "Failed to load meta-prompt template") from e

        answer = await _ask(
            meta_prompt, temperature=OPTIMIZE_TEMPERATURE, max_tokens=OPTIMIZE_MAX_TOKENS,
        )
        return _envelope(200, data={"optimizedPrompt": clean_model_output(answer)})

    return app
