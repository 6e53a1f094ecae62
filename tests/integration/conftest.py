# tests/integration/conftest.py — v1
"""Shared fixtures for integration tests.

The real caches, retry executor, rate limiter and image fetcher are wired
together; only the network edges are replaced: vision calls go to a
ScriptedVisionClient and HTTP goes through httpx.MockTransport.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import httpx
import pytest

from screenlens.llm.base_client import BaseLLMClient
from screenlens.llm.models import ImageInput, LLMResponse, Message

logger = logging.getLogger(__name__)

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


class ScriptedVisionClient(BaseLLMClient):
    """Vision client replaying a script of responses and exceptions.

    Each call consumes the next script item; an exception instance is
    raised, anything else is JSON-encoded as the response text. The last
    item repeats once the script runs out.
    """

    def __init__(self, script: list[Any], max_images: int = 10) -> None:
        self._script = list(script)
        self._max_images = max_images
        self.calls: list[dict[str, Any]] = []

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 8192,
    ) -> LLMResponse:
        self.calls.append({"messages": messages, "images": images, "max_tokens": max_tokens})
        item = self._script.pop(0) if len(self._script) > 1 else self._script[0]
        if isinstance(item, BaseException):
            raise item
        content = item if isinstance(item, str) else json.dumps(item)
        logger.debug("scripted vision call #%d", len(self.calls))
        return LLMResponse(
            content=content,
            input_tokens=100 * len(images),
            output_tokens=200,
            model="scripted",
            provider="scripted",
            latency_ms=1,
        )

    @property
    def supports_vision(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def max_images_per_request(self) -> int:
        return self._max_images


class RateLimitedError(Exception):
    """Mimics a provider SDK 429 error: status_code plus response headers."""

    def __init__(self, retry_after_s: str = "2") -> None:
        super().__init__("429 Too Many Requests")
        self.status_code = 429
        self.response = httpx.Response(429, headers={"retry-after": retry_after_s})


def image_handler(missing: set[str] | None = None) -> Callable[[httpx.Request], httpx.Response]:
    """MockTransport handler serving a PNG per URL, 404 for ``missing`` paths."""
    missing = missing or set()

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path in missing:
            return httpx.Response(404)
        return httpx.Response(
            200,
            content=PNG_HEADER + request.url.path.encode(),
            headers={"content-type": "image/png"},
        )

    return handler


@pytest.fixture
def image_client_factory():
    """Builds an httpx client serving images: image_client_factory(missing={"/a.png"})."""

    def build(missing: set[str] | None = None, handler=None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler or image_handler(missing)))

    return build


@pytest.fixture
def scripted_client_factory():
    return ScriptedVisionClient


@pytest.fixture
def rate_limited_error_factory():
    return RateLimitedError
