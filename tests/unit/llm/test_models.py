# tests/unit/llm/test_models.py — v1
"""Tests for llm/models.py: vision call types."""

from __future__ import annotations

import base64

from screenlens.llm.models import ImageInput, LLMResponse, Message


class TestMessage:
    def test_all_roles(self):
        for role in ["user", "assistant", "system"]:
            m = Message(role=role, content="test")
            assert m.role == role


class TestImageInput:
    def test_defaults(self):
        img = ImageInput(data=b"\x89PNG", media_type="image/png")
        assert img.source_id is None
        assert img.source_url is None
        assert img.size_bytes == 4

    def test_as_base64(self):
        img = ImageInput(data=b"\x89PNG", media_type="image/png")
        assert base64.b64decode(img.as_base64()) == b"\x89PNG"


class TestLLMResponse:
    def test_fixture(self, mock_llm_response):
        assert mock_llm_response.provider == "anthropic"
        assert mock_llm_response.total_tokens == 1500
        assert mock_llm_response.was_truncated is False

    def test_truncation_flags(self):
        for reason in ("max_tokens", "MAX_TOKENS"):
            r = LLMResponse(content="{", model="m", provider="p", stop_reason=reason)
            assert r.was_truncated

    def test_end_turn_not_truncated(self):
        r = LLMResponse(content="{}", model="m", provider="p", stop_reason="end_turn")
        assert not r.was_truncated
