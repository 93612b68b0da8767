"""Application configuration schemas.

Loaded from ``todochat/config/defaults.toml`` by
:func:`todochat.config_loader.load_app_config`. Every field has a default so
an empty or partial TOML file still yields a usable configuration.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class TaskStoreKind(StrEnum):
    """Backing store for the task API."""

    MEMORY = "memory"
    SUPABASE = "supabase"


class ChatConfig(BaseModel):
    """Client-side streaming chat settings."""

    endpoint: str = Field(
        default="http://localhost:8420/api/chat/stream",
        description="URL of the SSE chat endpoint",
    )
    tick_interval: float = Field(
        default=0.03, gt=0.0, description="Seconds between revealed characters"
    )
    drain_timeout: float = Field(
        default=10.0, gt=0.0,
        description="Max seconds finalize waits for the buffer before force-flushing",
    )
    request_timeout: float = Field(
        default=120.0, gt=0.0, description="HTTP timeout for the stream request"
    )


class ModelConfig(BaseModel):
    """Language-model routing and pricing.

    Prices are per 1M tokens in the currency the backend reports
    (the bundled defaults are CNY for DeepSeek-V3.2 on SiliconFlow).
    """

    model: str = Field(
        default="openai/deepseek-ai/DeepSeek-V3.2-Exp",
        description="LiteLLM model identifier",
    )
    display_name: str = Field(default="DeepSeek V3.2", description="Human-friendly name")
    api_key_env: str = Field(
        default="DEEPSEEK_API_KEY", description="Environment variable holding the API key"
    )
    api_base: str = Field(
        default="https://api.siliconflow.cn/v1",
        description="Custom API base URL (empty = provider default)",
    )
    temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    max_tokens: int = Field(default=8192, gt=0)
    timeout: int = Field(default=120, gt=0, description="Model call timeout in seconds")
    cost_input: float = Field(default=2.0, ge=0.0, description="Cost per 1M input tokens")
    cost_output: float = Field(default=3.0, ge=0.0, description="Cost per 1M output tokens")


class RetryConfig(BaseModel):
    """Backoff policy for opening a model stream."""

    max_retries: int = Field(default=5, ge=0, le=10, description="Retries after the first attempt")
    base_backoff: float = Field(default=1.0, ge=0.0, description="First backoff in seconds")
    rate_limit_fallback: float = Field(
        default=5.0, ge=0.0,
        description="Wait after a 429 that carries no Retry-After header",
    )


class ServerConfig(BaseModel):
    """Backend HTTP server settings."""

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8420, gt=0, lt=65536)
    task_store: TaskStoreKind = Field(default=TaskStoreKind.MEMORY)
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    prompt_template: str = Field(
        default="",
        description="Path to the meta-prompt template (empty = bundled template)",
    )


class AppConfig(BaseModel):
    """Top-level configuration for the CLI, client and server."""

    chat: ChatConfig = Field(default_factory=ChatConfig)
    model: ModelConfig = Field(default_factory=ModelConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
