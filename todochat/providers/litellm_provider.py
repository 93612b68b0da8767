"""LiteLLM adapter implementing the ChatProvider interface.

Routes chat completions to any LLM provider via LiteLLM's unified API and
handles token counting, timeouts, and retry with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence

import litellm

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from todochat.errors import ProviderError
from todochat.providers.base import ChatProvider
from todochat.schemas.messages import ChatTurn

logger = logging.getLogger(__name__)

_RETRYABLE = (
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    litellm.APIConnectionError,
    litellm.Timeout,
)


def _short_error_reason(error: Exception | None) -> str:
    """Extract a short, user-friendly reason from a LiteLLM error."""
    if error is None:
        return "unknown error"
    error_str = str(error).lower()
    if isinstance(error, litellm.RateLimitError) or "429" in error_str:
        return "rate limit"
    if "overloaded" in error_str or "529" in error_str:
        return "overloaded"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


def _retry_after_seconds(error: Exception) -> float | None:
    """Read a numeric Retry-After hint from a rate-limit error, if any."""
    sources = (
        getattr(error, "litellm_response_headers", None),
        getattr(getattr(error, "response", None), "headers", None),
    )
    value = None
    for headers in sources:
        if headers:
            value = headers.get("retry-after") or headers.get("Retry-After")
        if value is not None:
            break
    else:
        return None

    try:
        seconds = float(value)
    except (TypeError, ValueError):
        # HTTP-date form; fall back to the configured wait
        return None
    return max(seconds, 0.0)


def _status_code(error: Exception) -> int | None:
    status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


async def _iter_deltas(response) -> AsyncIterator[str]:
    async for chunk in response:
        delta = ""
        if chunk.choices and chunk.choices[0].delta:
            delta = chunk.choices[0].delta.content or ""
        if delta:
            yield delta


class LiteLLMProvider(ChatProvider):
    """Chat model adapter powered by LiteLLM.

    Every model call in todochat goes through litellm.acompletion(); no
    provider SDK is imported anywhere else.
    """

    async def stream_chat(self, messages: Sequence[ChatTurn]) -> AsyncIterator[str]:
        kwargs = self._build_completion_kwargs(messages)
        kwargs["stream"] = True
        response = await self._call_with_retry(kwargs)
        return _iter_deltas(response)

    async def complete(
        self,
        messages: Sequence[ChatTurn],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        kwargs = self._build_completion_kwargs(
            messages, temperature=temperature, max_tokens=max_tokens,
        )
        response = await self._call_with_retry(kwargs)
        if not response.choices:
            return ""
        message = response.choices[0].message
        return message.content or "" if message else ""

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return litellm.token_counter(model=self.model_id, text=text)

    def _build_completion_kwargs(
        self,
        messages: Sequence[ChatTurn],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        kwargs: dict = {
            "model": self._config.model,
            "messages": [turn.model_dump() for turn in messages],
            "temperature": self._config.temperature if temperature is None else temperature,
            "max_tokens": self._config.max_tokens if max_tokens is None else max_tokens,
            "timeout": float(self._config.timeout),
        }

        api_key = self.api_key
        if api_key:
            kwargs["api_key"] = api_key

        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        return kwargs

    async def _call_with_retry(self, kwargs: dict):
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        A 429 waits for the server's Retry-After hint when one is given.
        Non-retryable errors (auth, invalid request) are raised immediately.

        Raises:
            ProviderError: If the call fails or all retries are exhausted.
        """
        attempts = self._retry.max_retries + 1
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                return await litellm.acompletion(**kwargs)
            except TimeoutError:
                last_error = TimeoutError(
                    f"Model call timed out after {kwargs.get('timeout')}s "
                    f"(attempt {attempt + 1}/{attempts})"
                )
            except litellm.AuthenticationError:
                raise ProviderError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly."
                ) from None
            except litellm.BadRequestError as e:
                raise ProviderError(
                    f"API error ({_status_code(e) or 400}): {e}"
                ) from e
            except _RETRYABLE as e:
                last_error = e
            except Exception as e:
                # Unknown model and other non-transient failures
                raise ProviderError(f"API error ({_status_code(e) or 500}): {e}") from e

            if attempt < attempts - 1:
                backoff = self._backoff_for(last_error, attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    self._retry.max_retries,
                    self._config.display_name,
                    _short_error_reason(last_error),
                    backoff,
                )
                await asyncio.sleep(backoff)

        status = _status_code(last_error) if last_error is not None else None
        prefix = f"API error ({status})" if status else "API error"
        raise ProviderError(
            f"{prefix}: {_short_error_reason(last_error)} after "
            f"{self._retry.max_retries} retries"
        ) from last_error

    def _backoff_for(self, error: Exception | None, attempt: int) -> float:
        if isinstance(error, litellm.RateLimitError):
            hint = _retry_after_seconds(error)
            return self._retry.rate_limit_fallback if hint is None else hint
        return self._retry.base_backoff * (2**attempt)
