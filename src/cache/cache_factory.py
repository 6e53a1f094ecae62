# src/cache/cache_factory.py — v1
"""Factories building the caches from settings.

Each call returns a fresh, independently owned cache; the runtime decides
how long it lives.
"""

from __future__ import annotations

from screenlens.cache.analysis_cache import AnalysisCache
from screenlens.cache.fingerprint import ChecksumService
from screenlens.cache.memory_store import Clock, MemoryCacheStore
from screenlens.cache.search_cache import AppDetailsCache, SearchCache
from screenlens.config.settings import Settings


def create_analysis_cache(
    settings: Settings | None = None,
    checksums: ChecksumService | None = None,
    clock: Clock | None = None,
) -> AnalysisCache:
    """Analysis cache sized from settings (defaults: 50 entries, 7d TTL, 30d max age)."""
    settings = settings or Settings()
    store = MemoryCacheStore(
        max_entries=settings.analysis_cache_max_entries,
        ttl_ms=settings.analysis_cache_ttl_ms,
        max_age_ms=settings.analysis_cache_max_age_ms,
        name="analysis",
        clock=clock,
    )
    return AnalysisCache(store, checksums=checksums)


def create_search_cache(
    settings: Settings | None = None,
    clock: Clock | None = None,
) -> SearchCache:
    """Search cache sized from settings (defaults: 100 entries, 5min TTL, 1h max age)."""
    settings = settings or Settings()
    store = MemoryCacheStore(
        max_entries=settings.search_cache_max_entries,
        ttl_ms=settings.search_cache_ttl_ms,
        max_age_ms=settings.search_cache_max_age_ms,
        name="search",
        clock=clock,
    )
    return SearchCache(
        store,
        min_query_length=settings.search_min_query_length,
        default_country=settings.search_default_country,
        default_language=settings.search_default_language,
    )


def create_app_details_cache(
    settings: Settings | None = None,
    clock: Clock | None = None,
) -> AppDetailsCache:
    """App details cache: sliding TTL only, no absolute max age."""
    settings = settings or Settings()
    store = MemoryCacheStore(
        max_entries=settings.app_details_cache_max_entries,
        ttl_ms=settings.app_details_cache_ttl_ms,
        max_age_ms=None,
        name="app",
        clock=clock,
    )
    return AppDetailsCache(store)
