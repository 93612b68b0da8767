"""Model providers behind the chat backend."""

from todochat.providers.base import ChatProvider
from todochat.providers.litellm_provider import LiteLLMProvider

__all__ = ["ChatProvider", "LiteLLMProvider"]
