# src/extraction/image_fetcher.py — v1
"""Fetch screenshot images over HTTP for hashing and vision input.

Uses a lazily created httpx.AsyncClient shared by all fetches of one
fetcher; call close() (or use the fetcher as an async context manager) to
release connections.
"""

from __future__ import annotations

import logging
from typing import Literal

import httpx

from screenlens.llm.models import ImageInput

logger = logging.getLogger(__name__)

FetchErrorCode = Literal["FETCH_FAILED", "TIMEOUT", "INVALID_IMAGE"]

_SUFFIX_MEDIA_TYPES: tuple[tuple[str, str], ...] = (
    (".jpg", "image/jpeg"),
    (".jpeg", "image/jpeg"),
    (".png", "image/png"),
    (".webp", "image/webp"),
    (".gif", "image/gif"),
)
_DEFAULT_MEDIA_TYPE = "image/png"


class ImageFetchError(Exception):
    """Raised when a screenshot image cannot be retrieved."""

    def __init__(self, code: FetchErrorCode, message: str, url: str) -> None:
        self.code = code
        self.url = url
        super().__init__(message)


def guess_media_type(url: str, content_type: str | None = None) -> str:
    """Media type from the response Content-Type, else from the URL suffix."""
    if content_type:
        base = content_type.split(";", 1)[0].strip().lower()
        if base.startswith("image/"):
            return base
    lowered = url.lower().split("?", 1)[0]
    for suffix, media_type in _SUFFIX_MEDIA_TYPES:
        if lowered.endswith(suffix):
            return media_type
    return _DEFAULT_MEDIA_TYPE


class ImageFetcher:
    """Async HTTP image fetcher.

    Args:
        timeout_ms: Per-request timeout.
        client: Pre-built httpx client (tests pass one with a MockTransport).
    """

    def __init__(
        self,
        timeout_ms: int = 30_000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout_s = timeout_ms / 1000
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout_s,
                follow_redirects=True,
            )
        return self._client

    async def fetch(self, url: str, source_id: str | None = None) -> ImageInput:
        """Download one image.

        Raises:
            ImageFetchError: FETCH_FAILED on transport or HTTP errors, TIMEOUT
                on timeout, INVALID_IMAGE on empty or non-image bodies.
        """
        client = self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ImageFetchError("TIMEOUT", f"Timed out fetching image: {e}", url) from e
        except httpx.HTTPStatusError as e:
            raise ImageFetchError(
                "FETCH_FAILED",
                f"Failed to fetch image: HTTP {e.response.status_code}",
                url,
            ) from e
        except httpx.HTTPError as e:
            raise ImageFetchError("FETCH_FAILED", f"Failed to fetch image: {e}", url) from e

        content_type = response.headers.get("content-type")
        if content_type and not content_type.lower().startswith(("image/", "application/octet-stream")):
            raise ImageFetchError(
                "INVALID_IMAGE", f"Unexpected content type {content_type!r}", url
            )
        if not response.content:
            raise ImageFetchError("INVALID_IMAGE", "Empty image body", url)

        return ImageInput(
            data=response.content,
            media_type=guess_media_type(url, content_type),
            source_id=source_id,
            source_url=url,
        )

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ImageFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
