# src/llm/adapters/anthropic_adapter.py — v1
"""Anthropic Claude adapter implementing BaseLLMClient.

Uses the official anthropic SDK. Images are sent as base64 content blocks
ahead of the instruction text in a single user turn.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from screenlens.llm.base_client import BaseLLMClient
from screenlens.llm.models import ImageInput, LLMResponse, Message

logger = logging.getLogger(__name__)

MAX_IMAGES_PER_REQUEST = 10


class AnthropicAdapter(BaseLLMClient):
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        max_images: int = MAX_IMAGES_PER_REQUEST,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._max_images = max_images
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install screenlens[anthropic]"
                ) from e
            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 8192,
    ) -> LLMResponse:
        """Vision-enabled completion with images."""
        content_blocks: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": img.media_type,
                    "data": img.as_base64(),
                },
            }
            for img in images
        ]

        # Only the last user message carries the images
        user_text = ""
        history: list[dict[str, Any]] = []
        for m in messages:
            if m.role == "user":
                user_text = m.content
            elif m.role == "assistant":
                history.append({"role": m.role, "content": m.content})
            elif not system:
                system = m.content

        content_blocks.append({"type": "text", "text": user_text})
        history.append({"role": "user", "content": content_blocks})

        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "messages": history,
        }
        if system:
            params["system"] = system

        start = time.monotonic()
        response = await self._client.messages.create(**params)
        latency_ms = int((time.monotonic() - start) * 1000)

        logger.debug(
            "anthropic call: model=%s, images=%d, latency=%dms",
            self._model, len(images), latency_ms,
        )
        return LLMResponse(
            content=self._extract_text(response),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
            stop_reason=getattr(response, "stop_reason", None),
            raw_response=response,
        )

    @property
    def supports_vision(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def max_images_per_request(self) -> int:
        return self._max_images

    @staticmethod
    def _extract_text(response: Any) -> str:
        """First text block of an Anthropic response, "" if none."""
        for block in response.content:
            if getattr(block, "type", None) == "text":
                return block.text
        return ""
