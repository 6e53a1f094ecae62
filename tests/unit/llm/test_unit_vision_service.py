# tests/unit/llm/test_unit_vision_service.py — v1
"""Tests for llm/vision_service.py."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from screenlens.extraction.image_fetcher import ImageFetchError
from screenlens.llm.errors import VisionServiceError
from screenlens.llm.models import LLMResponse
from screenlens.llm.vision_service import (
    VisionService,
    build_instruction,
    parse_analysis,
    strip_code_fence,
)


def _response(content: str) -> LLMResponse:
    return LLMResponse(content=content, model="m", provider="anthropic")


class TestParsing:
    def test_strip_fence(self):
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'
        assert strip_code_fence('{"a": 1}') == '{"a": 1}'

    def test_parse_plain_json(self):
        assert parse_analysis('{"overallStyle": "flat"}') == {"overallStyle": "flat"}

    def test_parse_fenced_with_preamble(self):
        text = 'Here you go:\n```json\n{"screens": []}\n```\nDone.'
        assert parse_analysis(text) == {"screens": []}

    def test_empty_text(self):
        with pytest.raises(VisionServiceError) as exc_info:
            parse_analysis("   ")
        assert exc_info.value.code == "RESPONSE_PARSE_ERROR"

    def test_invalid_json(self):
        with pytest.raises(VisionServiceError) as exc_info:
            parse_analysis("not json at all")
        assert exc_info.value.code == "RESPONSE_PARSE_ERROR"
        assert not exc_info.value.retryable

    def test_non_object(self):
        with pytest.raises(VisionServiceError) as exc_info:
            parse_analysis("[1, 2]")
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_instruction_names_subject(self):
        assert build_instruction("Notes", "PROMPT") == "Analyzing app: Notes\n\nPROMPT"


class TestLoadImages:
    @pytest.mark.asyncio
    async def test_loads_all(self, mock_llm_client, mock_fetcher, screenshots):
        service = VisionService(mock_llm_client, mock_fetcher)
        images = await service.load_images(screenshots)
        assert [i.source_id for i in images] == ["shot0", "shot1", "shot2"]
        assert mock_fetcher.fetch.await_count == 3

    @pytest.mark.asyncio
    async def test_empty(self, mock_llm_client, mock_fetcher):
        service = VisionService(mock_llm_client, mock_fetcher)
        with pytest.raises(VisionServiceError) as exc_info:
            await service.load_images([])
        assert exc_info.value.code == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_over_provider_limit(self, mock_llm_client, mock_fetcher, screenshot_factory):
        service = VisionService(mock_llm_client, mock_fetcher)
        with pytest.raises(VisionServiceError) as exc_info:
            await service.load_images(screenshot_factory(11))
        assert exc_info.value.code == "VALIDATION_ERROR"
        mock_fetcher.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_partial_failure_tolerated(self, mock_llm_client, mock_fetcher, screenshots):
        original = mock_fetcher.fetch.side_effect

        async def flaky(url, source_id=None):
            if source_id == "shot1":
                raise ImageFetchError("FETCH_FAILED", "HTTP 404", url)
            return await original(url, source_id)

        mock_fetcher.fetch = AsyncMock(side_effect=flaky)
        service = VisionService(mock_llm_client, mock_fetcher)
        images = await service.load_images(screenshots)
        assert [i.source_id for i in images] == ["shot0", "shot2"]

    @pytest.mark.asyncio
    async def test_all_failed(self, mock_llm_client, mock_fetcher, screenshots):
        mock_fetcher.fetch = AsyncMock(side_effect=ImageFetchError("TIMEOUT", "slow", "u"))
        service = VisionService(mock_llm_client, mock_fetcher)
        with pytest.raises(VisionServiceError) as exc_info:
            await service.load_images(screenshots)
        assert exc_info.value.code == "IMAGE_FETCH_ERROR"
        assert "All 3 screenshots failed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self, mock_llm_client, mock_fetcher, screenshots):
        mock_fetcher.fetch = AsyncMock(side_effect=RuntimeError("bug"))
        service = VisionService(mock_llm_client, mock_fetcher)
        with pytest.raises(RuntimeError):
            await service.load_images(screenshots)


class TestComplete:
    @pytest.mark.asyncio
    async def test_stamps_metadata(self, mock_llm_client, mock_fetcher, screenshots):
        service = VisionService(mock_llm_client, mock_fetcher)
        analysis = await service.analyze("Notes", screenshots)
        assert analysis["overallStyle"] == "minimal"
        assert analysis["screensAnalyzed"] == 3
        assert "analyzedAt" in analysis

    @pytest.mark.asyncio
    async def test_sends_instruction_and_images(self, mock_llm_client, mock_fetcher, screenshots):
        service = VisionService(mock_llm_client, mock_fetcher, max_tokens=4096)
        images = await service.load_images(screenshots)
        await service.complete("Notes", images)
        kwargs = mock_llm_client.complete_with_vision.call_args.kwargs
        assert kwargs["messages"][0].content.startswith("Analyzing app: Notes")
        assert len(kwargs["images"]) == 3
        assert kwargs["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_bad_response(self, mock_llm_client, mock_fetcher, screenshots):
        mock_llm_client.complete_with_vision = AsyncMock(return_value=_response("sorry"))
        service = VisionService(mock_llm_client, mock_fetcher)
        with pytest.raises(VisionServiceError) as exc_info:
            await service.analyze("Notes", screenshots)
        assert exc_info.value.code == "RESPONSE_PARSE_ERROR"

    def test_properties(self, mock_llm_client, mock_fetcher):
        service = VisionService(mock_llm_client, mock_fetcher)
        assert service.provider_name == "anthropic"
        assert service.max_screenshots == 10
