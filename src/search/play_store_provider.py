# src/search/play_store_provider.py — v1
"""Google Play search via the google-play-scraper package.

Google Play has no public search API. google-play-scraper parses the store
pages and is synchronous, so calls run in a worker thread. Consecutive
requests are spaced by ``min_interval_ms`` to stay under Play's throttling.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Any
from urllib.error import URLError

from google_play_scraper import app as play_app
from google_play_scraper import search as play_search
from google_play_scraper.exceptions import ExtraHTTPError, NotFoundError

from screenlens.core.models import AppSearchResult, Platform
from screenlens.llm.errors import VisionServiceError, create_service_error
from screenlens.search.base_provider import BaseSearchProvider

logger = logging.getLogger(__name__)

PLAY_STORE_BASE = "https://play.google.com"
MAX_SEARCH_HITS = 30

_SIZE_SUFFIX = re.compile(r"=(?:w\d+(?:-h\d+)?|s\d+)(?:-[a-z]+)?$")


def enhance_screenshot_url(url: str) -> str:
    """Ask the Play image CDN for a 1080x1920 rendition."""
    return f"{_SIZE_SUFFIX.sub('', url)}=w1080-h1920"


def to_search_result(item: dict[str, Any]) -> AppSearchResult:
    """Map one google-play-scraper result onto AppSearchResult."""
    app_id = item.get("appId") or ""
    return AppSearchResult(
        id=app_id,
        name=item.get("title") or app_id,
        developer=item.get("developer") or "",
        platform="android",
        store_url=item.get("url") or f"{PLAY_STORE_BASE}/store/apps/details?id={app_id}",
        icon_url=item.get("icon") or "",
        bundle_id=app_id,
        genre=item.get("genre") or "",
        rating=item.get("score"),
        rating_count=item.get("ratings"),
        screenshots=[enhance_screenshot_url(u) for u in item.get("screenshots") or []],
    )


class PlayStoreSearchProvider(BaseSearchProvider):
    """Search provider for Google Play.

    Args:
        min_interval_ms: Minimum spacing between two store requests.
    """

    def __init__(self, min_interval_ms: int = 200) -> None:
        self._min_interval_s = min_interval_ms / 1000
        self._last_request = 0.0
        self._throttle = asyncio.Lock()

    @property
    def platform(self) -> Platform:
        return "android"

    async def search(
        self,
        query: str,
        country: str = "us",
        language: str = "en",
        limit: int = 10,
    ) -> list[AppSearchResult]:
        try:
            items = await self._call(
                play_search,
                query.strip(),
                n_hits=min(limit, MAX_SEARCH_HITS),
                lang=language,
                country=country,
            )
        except NotFoundError:
            items = []
        # Play occasionally returns a promoted block without a package id
        results = [to_search_result(item) for item in items or [] if item.get("appId")]
        logger.debug("Play search %r returned %d apps", query, len(results))
        return results[:limit]

    async def get_app(
        self, app_id: str, country: str = "us", language: str = "en"
    ) -> AppSearchResult | None:
        if not app_id.strip():
            raise create_service_error("VALIDATION_ERROR", "Play Store package name is empty")
        try:
            item = await self._call(play_app, app_id.strip(), lang=language, country=country)
        except NotFoundError:
            return None
        return to_search_result(item)

    async def _call(self, fn: Any, *args: Any, **kwargs: Any) -> Any:
        await self._wait_turn()
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except NotFoundError:
            raise
        except ExtraHTTPError as e:
            raise _http_error(e) from e
        except (URLError, TimeoutError, ConnectionError) as e:
            raise create_service_error("NETWORK_ERROR", f"Google Play unreachable: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise create_service_error(
                "RESPONSE_PARSE_ERROR", f"Unexpected Google Play page structure: {e!r}"
            ) from e

    async def _wait_turn(self) -> None:
        async with self._throttle:
            delay = self._last_request + self._min_interval_s - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            self._last_request = time.monotonic()


def _http_error(exc: ExtraHTTPError) -> VisionServiceError:
    match = re.search(r"\b([45]\d\d)\b", str(exc))
    status = int(match.group(1)) if match else None
    if status == 429:
        return create_service_error(
            "RATE_LIMITED", "Google Play rate limit exceeded", status_code=429
        )
    return create_service_error(
        "NETWORK_ERROR", f"Google Play returned an error: {exc}", status_code=status
    )
