# src/search/service.py — v1
"""Cached, retried app-store search across platforms."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from screenlens.cache.search_cache import AppDetailsCache, SearchCache
from screenlens.core.models import AppSearchResult, Platform, PlatformSearchOutcome, SearchResults
from screenlens.llm.errors import VisionServiceError
from screenlens.llm.retry import RetryExecutor, RetryPolicy
from screenlens.search.base_provider import BaseSearchProvider

logger = logging.getLogger(__name__)


class SearchService:
    """Searches every requested platform in parallel.

    A platform without a registered provider reports an error instead of
    failing the whole search. Results are cached only when at least one
    platform succeeded.
    """

    def __init__(
        self,
        providers: Sequence[BaseSearchProvider],
        cache: SearchCache,
        app_cache: AppDetailsCache,
        executor: RetryExecutor,
        default_limit: int = 10,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._providers: dict[str, BaseSearchProvider] = {p.platform: p for p in providers}
        self._cache = cache
        self._app_cache = app_cache
        self._executor = executor
        self._default_limit = default_limit
        self._policy = policy

    @property
    def platforms(self) -> list[str]:
        return sorted(self._providers)

    async def search(
        self,
        query: str,
        platforms: Sequence[Platform] = ("ios", "android"),
        country: str | None = None,
        language: str | None = None,
        limit: int | None = None,
        force_refresh: bool = False,
    ) -> SearchResults:
        if not force_refresh:
            lookup = self._cache.lookup(query, platforms, country, language)
            if lookup.hit:
                logger.info("Search cache hit for %r (entry %s)", query, lookup.entry_id)
                return SearchResults(
                    query=query,
                    ios=lookup.ios_results or [],
                    android=lookup.android_results or [],
                    ios_success=lookup.ios_success,
                    android_success=lookup.android_success,
                    ios_error=lookup.ios_error,
                    android_error=lookup.android_error,
                    from_cache=True,
                    cache_entry_id=lookup.entry_id,
                )
            logger.debug("Search cache miss for %r: %s", query, lookup.miss_reason)

        key = self._cache.build_key(query, platforms, country, language)
        requested = list(dict.fromkeys(platforms))
        outcomes = await asyncio.gather(
            *(
                self._search_platform(p, query, key.country, key.language, limit or self._default_limit)
                for p in requested
            )
        )

        results = SearchResults(query=query)
        for outcome in outcomes:
            if outcome.platform == "ios":
                results.ios = outcome.results
                results.ios_success = outcome.success
                results.ios_error = outcome.error
            else:
                results.android = outcome.results
                results.android_success = outcome.success
                results.android_error = outcome.error

        if results.any_success:
            entry_id = self._cache.store(query, platforms, results, country, language)
            results.cache_entry_id = entry_id or None
        return results

    async def get_app(
        self,
        app_id: str,
        platform: Platform = "ios",
        country: str | None = None,
        language: str | None = None,
    ) -> AppSearchResult | None:
        """App details, served from the app details cache when possible.

        Raises:
            VisionServiceError: If the provider fails after retries.
        """
        cached = self._app_cache.get(app_id, platform)
        if cached is not None:
            return cached

        provider = self._providers.get(platform)
        if provider is None:
            raise VisionServiceError("VALIDATION_ERROR", f"No search provider for {platform}")

        app = await self._executor.execute(
            lambda: provider.get_app(app_id, country or "us", language or "en"),
            policy=self._policy,
        )
        if app is not None:
            self._app_cache.set(app)
        return app

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()

    async def _search_platform(
        self,
        platform: Platform,
        query: str,
        country: str,
        language: str,
        limit: int,
    ) -> PlatformSearchOutcome:
        provider = self._providers.get(platform)
        if provider is None:
            return PlatformSearchOutcome(
                platform=platform, error=f"No search provider for {platform}"
            )

        try:
            apps = await self._executor.execute(
                lambda: provider.search(query, country=country, language=language, limit=limit),
                policy=self._policy,
            )
        except VisionServiceError as e:
            logger.warning("%s search failed for %r: %s", platform, query, e)
            return PlatformSearchOutcome(platform=platform, error=e.message)

        return PlatformSearchOutcome(platform=platform, results=apps, success=True)
