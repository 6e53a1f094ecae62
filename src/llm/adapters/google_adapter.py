# src/llm/adapters/google_adapter.py — v1
"""Google Gemini adapter implementing BaseLLMClient.

Uses google-generativeai SDK. Gemini accepts far more images per request
than Claude, so the batch limit is higher.
"""

from __future__ import annotations

import time
from typing import Any

from screenlens.llm.base_client import BaseLLMClient
from screenlens.llm.models import ImageInput, LLMResponse, Message

MAX_IMAGES_PER_REQUEST = 50


class GoogleAdapter(BaseLLMClient):
    """Google Gemini adapter."""

    def __init__(
        self,
        model: str = "gemini-1.5-flash",
        api_key: str = "",
        max_images: int = MAX_IMAGES_PER_REQUEST,
        **kwargs: Any,
    ):
        self._model = model
        self._api_key = api_key
        self._max_images = max_images

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 8192,
    ) -> LLMResponse:
        try:
            import google.generativeai as genai
        except ImportError as e:
            raise ImportError(
                "google-generativeai package required: pip install screenlens[google]"
            ) from e

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model, system_instruction=system)

        parts: list[dict[str, Any]] = []
        for img in images:
            parts.append({"inline_data": {"mime_type": img.media_type, "data": img.data}})
        for m in messages:
            if m.role == "user":
                parts.append({"text": m.content})

        t0 = time.monotonic()
        resp = await model.generate_content_async(
            parts, generation_config={"max_output_tokens": max_tokens},
        )
        latency = int((time.monotonic() - t0) * 1000)

        usage = getattr(resp, "usage_metadata", None)
        candidates = getattr(resp, "candidates", None) or []
        finish = getattr(candidates[0], "finish_reason", None) if candidates else None
        return LLMResponse(
            content=resp.text or "",
            input_tokens=getattr(usage, "prompt_token_count", 0) if usage else 0,
            output_tokens=getattr(usage, "candidates_token_count", 0) if usage else 0,
            model=self._model,
            provider="google",
            latency_ms=latency,
            stop_reason=getattr(finish, "name", None) if finish is not None else None,
            raw_response=resp,
        )

    @property
    def supports_vision(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def max_images_per_request(self) -> int:
        return self._max_images
