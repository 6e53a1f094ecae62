# src/cache/search_cache.py — v1
"""App-store search result caches.

SearchCache keys results by normalized query, sorted platform set, country
and language, with a short TTL since store listings change often.
AppDetailsCache holds single app lookups with a sliding TTL only.
"""

from __future__ import annotations

import logging
import time
from typing import Sequence

from screenlens.cache.base_cache_store import BaseCacheStore
from screenlens.cache.models import (
    CacheEntry,
    CacheStats,
    SearchCacheKey,
    SearchCacheLookupResult,
    SearchCacheRecord,
)
from screenlens.core.models import AppSearchResult, Platform, SearchResults

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2
DEFAULT_COUNTRY = "us"
DEFAULT_LANGUAGE = "en"


def normalize_query(query: str) -> str:
    return query.strip().lower()


class SearchCache:
    """Cache of combined per-platform search results.

    Args:
        store: Backing store.
        min_query_length: Queries shorter than this (after trimming) are
            never cached.
        default_country: Used when a lookup does not name a country.
        default_language: Used when a lookup does not name a language.
    """

    def __init__(
        self,
        store: BaseCacheStore[SearchCacheKey, SearchCacheRecord],
        min_query_length: int = MIN_QUERY_LENGTH,
        default_country: str = DEFAULT_COUNTRY,
        default_language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._store = store
        self._min_query_length = min_query_length
        self._default_country = default_country
        self._default_language = default_language

    def build_key(
        self,
        query: str,
        platforms: Sequence[Platform],
        country: str | None = None,
        language: str | None = None,
    ) -> SearchCacheKey:
        return SearchCacheKey(
            query=normalize_query(query),
            platforms=tuple(sorted(platforms)),
            country=country or self._default_country,
            language=language or self._default_language,
        )

    def is_cacheable(self, query: str) -> bool:
        return len(query.strip()) >= self._min_query_length

    def lookup(
        self,
        query: str,
        platforms: Sequence[Platform],
        country: str | None = None,
        language: str | None = None,
    ) -> SearchCacheLookupResult:
        start = time.monotonic()

        if not self.is_cacheable(query):
            return SearchCacheLookupResult.miss("QUERY_TOO_SHORT", _elapsed_ms(start))

        key = self.build_key(query, platforms, country, language)
        entry, reason = self._store.fetch(key)
        if entry is None:
            return SearchCacheLookupResult.miss(reason or "NO_CACHE_ENTRY", _elapsed_ms(start))

        record = entry.payload
        if set(platforms) != set(record.platforms):
            return SearchCacheLookupResult.miss("PLATFORM_MISMATCH", _elapsed_ms(start))

        return SearchCacheLookupResult(
            hit=True,
            ios_results=record.ios_results,
            android_results=record.android_results,
            ios_success=record.ios_success,
            android_success=record.android_success,
            ios_error=record.ios_error,
            android_error=record.android_error,
            entry_id=entry.id,
            lookup_time_ms=_elapsed_ms(start),
        )

    def has_entry(
        self,
        query: str,
        platforms: Sequence[Platform],
        country: str | None = None,
        language: str | None = None,
    ) -> bool:
        if not self.is_cacheable(query):
            return False
        return self._store.has(self.build_key(query, platforms, country, language))

    def store(
        self,
        query: str,
        platforms: Sequence[Platform],
        results: SearchResults,
        country: str | None = None,
        language: str | None = None,
    ) -> str:
        """Cache search results. Returns the entry id, or "" if the query is too short."""
        if not self.is_cacheable(query):
            logger.debug("Query too short to cache: %r", query)
            return ""

        key = self.build_key(query, platforms, country, language)
        entry = self._store.set(
            key,
            SearchCacheRecord(
                query=key.query,
                platforms=list(platforms),
                country=key.country,
                language=key.language,
                ios_results=list(results.ios),
                android_results=list(results.android),
                ios_success=results.ios_success,
                android_success=results.android_success,
                ios_error=results.ios_error,
                android_error=results.android_error,
            ),
        )
        logger.debug(
            "Stored search results for %r (%d iOS, %d Android)",
            query, len(results.ios), len(results.android),
        )
        return entry.id

    def invalidate_by_query(self, query_prefix: str) -> int:
        prefix = normalize_query(query_prefix)
        count = self._store.delete_where(lambda _key, record: record.query.startswith(prefix))
        logger.info("Invalidated %d search entries matching %r", count, query_prefix)
        return count

    def entries_for_query(self, query_prefix: str) -> list[CacheEntry[SearchCacheRecord]]:
        prefix = normalize_query(query_prefix)
        return [e for e in self._store.entries() if e.payload.query.startswith(prefix)]

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> CacheStats:
        return self._store.stats()


class AppDetailsCache:
    """Single-app lookups keyed by (platform, app id)."""

    def __init__(self, store: BaseCacheStore[tuple[str, str], AppSearchResult]) -> None:
        self._store = store

    def get(self, app_id: str, platform: Platform) -> AppSearchResult | None:
        entry = self._store.get((platform, app_id))
        return entry.payload if entry is not None else None

    def set(self, app: AppSearchResult) -> str:
        entry = self._store.set((app.platform, app.id), app)
        return entry.id

    def has(self, app_id: str, platform: Platform) -> bool:
        return self._store.has((platform, app_id))

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> CacheStats:
        return self._store.stats()


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000
