"""Abstract base class for chat model providers.

Defines the ChatProvider interface the SSE backend and the task API talk
to. They never call a provider SDK directly.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence

from todochat.schemas.config import ModelConfig, RetryConfig
from todochat.schemas.messages import ChatTurn


class ChatProvider(ABC):
    """Abstract interface for a language model behind the chat backend.

    Initialized from the ``[model]`` section of the app config. Exposes
    identity, pricing, token counting, a streaming call and a one-shot
    completion.
    """

    def __init__(self, config: ModelConfig, retry: RetryConfig | None = None) -> None:
        self._config = config
        self._retry = retry or RetryConfig()

    # ── Identity ──────────────────────────────────────────────

    @property
    def model_id(self) -> str:
        """LiteLLM model identifier used for routing."""
        return self._config.model

    @property
    def display_name(self) -> str:
        """Human-friendly model name for CLI output."""
        return self._config.display_name

    @property
    def config(self) -> ModelConfig:
        return self._config

    @property
    def api_key(self) -> str:
        """API key read from the configured environment variable ('' if unset)."""
        return os.environ.get(self._config.api_key_env, "")

    # ── Cost ──────────────────────────────────────────────────

    @property
    def cost_per_1m_input(self) -> float:
        return self._config.cost_input

    @property
    def cost_per_1m_output(self) -> float:
        return self._config.cost_output

    def input_cost(self, tokens: int) -> float:
        return (tokens / 1_000_000) * self.cost_per_1m_input

    def output_cost(self, tokens: int) -> float:
        return (tokens / 1_000_000) * self.cost_per_1m_output

    def calculate_cost(self, prompt_tokens: int, completion_tokens: int) -> float:
        """Calculate the cost for a given token count.

        Args:
            prompt_tokens: Number of input tokens.
            completion_tokens: Number of output tokens.

        Returns:
            Estimated cost in the configured currency.
        """
        return self.input_cost(prompt_tokens) + self.output_cost(completion_tokens)

    # ── Core interface ────────────────────────────────────────

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count the tokens ``text`` occupies for this model."""

    @abstractmethod
    async def stream_chat(self, messages: Sequence[ChatTurn]) -> AsyncIterator[str]:
        """Open a streaming completion and return an iterator of text deltas.

        Opening the stream (including retries) happens before this returns,
        so a caller can announce the start of generation only once the
        model has accepted the request.

        Raises:
            ProviderError: If the stream cannot be opened after all retries.
        """

    @abstractmethod
    async def complete(
        self,
        messages: Sequence[ChatTurn],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Send a non-streaming completion request and return the text.

        Raises:
            ProviderError: If the call fails after all retries.
        """
