# tests/unit/llm/test_unit_client_factory.py — v1
"""Tests for llm/client_factory.py."""

from __future__ import annotations

import pytest

from screenlens.config.settings import Settings
from screenlens.llm.adapters.anthropic_adapter import AnthropicAdapter
from screenlens.llm.adapters.google_adapter import GoogleAdapter
from screenlens.llm.client_factory import (
    UnsupportedProviderError,
    available_providers,
    create_client_from_settings,
    create_llm_client,
)


class TestCreateLLMClient:
    def test_anthropic(self, settings):
        client = create_llm_client("anthropic", "claude-test", settings)
        assert isinstance(client, AnthropicAdapter)
        assert client._api_key == "test-key"

    def test_google(self):
        s = Settings(_env_file=None, google_api_key="g-key")
        client = create_llm_client("google", "gemini-1.5-flash", s)
        assert isinstance(client, GoogleAdapter)
        assert client._api_key == "g-key"

    def test_explicit_kwargs_win(self, settings):
        client = create_llm_client("anthropic", "claude-test", settings, api_key="other")
        assert client._api_key == "other"

    def test_unsupported(self):
        with pytest.raises(UnsupportedProviderError, match="Available"):
            create_llm_client("nonexistent", "m")

    def test_unsupported_is_value_error(self):
        with pytest.raises(ValueError):
            create_llm_client("nonexistent", "m")

    def test_available_providers(self):
        assert {"anthropic", "google"} <= set(available_providers())


class TestFromSettings:
    def test_uses_configured_provider(self):
        s = Settings(
            _env_file=None,
            vision_provider="google",
            vision_model="gemini-1.5-pro",
            google_api_key="g",
        )
        client = create_client_from_settings(s)
        assert client.provider_name == "google"
        assert client._model == "gemini-1.5-pro"
