"""Tests for todochat.providers.base — ChatProvider ABC."""

import pytest

from todochat.providers.base import ChatProvider
from todochat.schemas.config import ModelConfig, RetryConfig


def _make_config(**overrides) -> ModelConfig:
    """Helper to create a ModelConfig with sensible defaults."""
    defaults = {
        "model": "openai/test-model-v1",
        "display_name": "Test Model",
        "api_key_env": "TODOCHAT_TEST_API_KEY",
        "cost_input": 2.00,
        "cost_output": 3.00,
    }
    defaults.update(overrides)
    return ModelConfig(**defaults)


class ConcreteProvider(ChatProvider):
    """Minimal concrete implementation for testing the ABC."""

    def count_tokens(self, text):
        return len(text)

    async def stream_chat(self, messages):
        async def _empty():
            return
            yield

        return _empty()

    async def complete(self, messages, *, temperature=None, max_tokens=None):
        return "test"


class TestChatProviderProperties:
    def test_identity_properties(self):
        provider = ConcreteProvider(_make_config())
        assert provider.model_id == "openai/test-model-v1"
        assert provider.display_name == "Test Model"

    def test_config_property(self):
        config = _make_config()
        provider = ConcreteProvider(config)
        assert provider.config is config

    def test_default_retry_policy(self):
        provider = ConcreteProvider(_make_config())
        assert provider._retry == RetryConfig()

    def test_api_key_read_at_call_time(self, monkeypatch):
        provider = ConcreteProvider(_make_config())
        monkeypatch.setenv("TODOCHAT_TEST_API_KEY", "")
        assert provider.api_key == ""
        monkeypatch.setenv("TODOCHAT_TEST_API_KEY", "sk-later")
        assert provider.api_key == "sk-later"

    def test_cost_properties(self):
        provider = ConcreteProvider(_make_config(cost_input=2.50, cost_output=10.00))
        assert provider.cost_per_1m_input == 2.50
        assert provider.cost_per_1m_output == 10.00


class TestCalculateCost:
    def test_basic_cost_calculation(self):
        provider = ConcreteProvider(_make_config(cost_input=2.00, cost_output=3.00))
        # 1000 prompt tokens = 1000/1M * 2.00 = 0.002
        # 500 completion tokens = 500/1M * 3.00 = 0.0015
        assert abs(provider.calculate_cost(1000, 500) - 0.0035) < 1e-10

    def test_split_costs(self):
        provider = ConcreteProvider(_make_config(cost_input=2.00, cost_output=3.00))
        assert provider.input_cost(1_000_000) == 2.0
        assert provider.output_cost(1_000_000) == 3.0

    def test_zero_tokens(self):
        provider = ConcreteProvider(_make_config())
        assert provider.calculate_cost(0, 0) == 0.0

    def test_free_model(self):
        provider = ConcreteProvider(_make_config(cost_input=0.0, cost_output=0.0))
        assert provider.calculate_cost(100000, 50000) == 0.0


class TestAbstractEnforcement:
    def test_cannot_instantiate_abc_directly(self):
        with pytest.raises(TypeError):
            ChatProvider(_make_config())
