# src/search/itunes_provider.py — v1
"""iOS App Store search via the public iTunes Search and Lookup APIs."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from screenlens.core.models import AppSearchResult, Platform
from screenlens.llm.errors import create_service_error
from screenlens.search.base_provider import BaseSearchProvider

logger = logging.getLogger(__name__)

ITUNES_API_BASE = "https://itunes.apple.com"


def to_search_result(item: dict[str, Any]) -> AppSearchResult:
    """Map one iTunes result object onto AppSearchResult."""
    return AppSearchResult(
        id=str(item.get("trackId", "")),
        name=item.get("trackName", ""),
        developer=item.get("artistName", ""),
        platform="ios",
        store_url=item.get("trackViewUrl", ""),
        icon_url=item.get("artworkUrl512") or item.get("artworkUrl100") or "",
        bundle_id=item.get("bundleId", ""),
        genre=item.get("primaryGenreName", ""),
        rating=item.get("averageUserRating"),
        rating_count=item.get("userRatingCount"),
        screenshots=list(item.get("screenshotUrls") or []),
        ipad_screenshots=list(item.get("ipadScreenshotUrls") or []),
    )


class ITunesSearchProvider(BaseSearchProvider):
    """Search provider for the iOS App Store.

    HTTP 429 becomes RATE_LIMITED and 5xx becomes NETWORK_ERROR, so the retry
    executor treats store throttling like vision throttling.
    """

    def __init__(
        self,
        base_url: str = ITUNES_API_BASE,
        timeout_ms: int = 10_000,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_ms / 1000
        self._client = client
        self._owns_client = client is None

    @property
    def platform(self) -> Platform:
        return "ios"

    async def search(
        self,
        query: str,
        country: str = "us",
        language: str = "en",
        limit: int = 10,
    ) -> list[AppSearchResult]:
        payload = await self._get(
            "/search",
            {
                "term": query.strip(),
                "country": country,
                "media": "software",
                "entity": "software",
                "limit": str(limit),
                "lang": _itunes_lang(language, country),
            },
        )
        results = [to_search_result(item) for item in payload.get("results", [])]
        logger.debug("iTunes search %r returned %d apps", query, len(results))
        return results

    async def get_app(
        self, app_id: str, country: str = "us", language: str = "en"
    ) -> AppSearchResult | None:
        if not app_id.isdigit():
            raise create_service_error("VALIDATION_ERROR", f"Invalid iTunes app id: {app_id!r}")
        payload = await self._get(
            "/lookup",
            {"id": app_id, "country": country, "lang": _itunes_lang(language, country)},
        )
        results = payload.get("results") or []
        return to_search_result(results[0]) if results else None

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    async def _get(self, path: str, params: dict[str, str]) -> dict[str, Any]:
        response = await self._get_client().get(f"{self._base_url}{path}", params=params)

        if response.status_code == 429:
            raise create_service_error(
                "RATE_LIMITED",
                "iTunes API rate limit exceeded",
                retry_after_ms=_retry_after_ms(response),
                status_code=429,
            )
        if response.status_code >= 500:
            raise create_service_error(
                "NETWORK_ERROR",
                f"iTunes API returned status {response.status_code}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise create_service_error(
                "VALIDATION_ERROR",
                f"iTunes API returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise create_service_error(
                "RESPONSE_PARSE_ERROR", f"Invalid JSON from iTunes API: {e}"
            ) from e


def _itunes_lang(language: str, country: str) -> str:
    """iTunes expects a locale such as en_us or ja_jp."""
    return f"{language}_{country}".lower()


def _retry_after_ms(response: httpx.Response) -> int | None:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return int(float(value) * 1000)
    except ValueError:
        return None
