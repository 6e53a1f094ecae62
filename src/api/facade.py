# src/api/facade.py — v1
"""Public API facade: single entry point for analysis and search.

Usage:
    from screenlens.api.facade import analyze, create_runtime

    async with create_runtime() as runtime:
        outcome = await analyze(request, runtime)

A Runtime owns every shared, stateful piece (caches, rate limiter, HTTP
clients). Create one per process and pass it to each call.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from screenlens.api.models import AnalyzeRequest, SearchRequest
from screenlens.cache.analysis_cache import AnalysisCache
from screenlens.cache.cache_factory import (
    create_analysis_cache,
    create_app_details_cache,
    create_search_cache,
)
from screenlens.cache.fingerprint import ChecksumService
from screenlens.config.settings import Settings
from screenlens.core.models import AnalysisOutcome, SearchResults
from screenlens.extraction.image_fetcher import ImageFetcher
from screenlens.llm.base_client import BaseLLMClient
from screenlens.llm.batch import BatchLimiter
from screenlens.llm.client_factory import create_client_from_settings
from screenlens.llm.rate_limiter import RateLimiter
from screenlens.llm.retry import RetryExecutor
from screenlens.llm.vision_service import VisionService
from screenlens.logging.context import clear_context, set_request_context
from screenlens.pipeline.analysis_pipeline import AnalysisPipeline
from screenlens.search.base_provider import BaseSearchProvider
from screenlens.search.itunes_provider import ITunesSearchProvider
from screenlens.search.play_store_provider import PlayStoreSearchProvider
from screenlens.search.service import SearchService

logger = logging.getLogger(__name__)


class Runtime:
    """Long-lived collaborators shared by every request."""

    def __init__(
        self,
        settings: Settings,
        pipeline: AnalysisPipeline,
        search_service: SearchService,
        fetcher: ImageFetcher,
        rate_limiter: RateLimiter,
        executor: RetryExecutor,
        analysis_cache: AnalysisCache | None,
    ) -> None:
        self.settings = settings
        self.pipeline = pipeline
        self.search_service = search_service
        self.fetcher = fetcher
        self.rate_limiter = rate_limiter
        self.executor = executor
        self.analysis_cache = analysis_cache

    async def close(self) -> None:
        await self.fetcher.close()
        await self.search_service.close()

    async def __aenter__(self) -> Runtime:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def status(self) -> dict[str, Any]:
        data = self.pipeline.status()
        data["searchPlatforms"] = self.search_service.platforms
        return data


def create_runtime(
    settings: Settings | None = None,
    llm_client: BaseLLMClient | None = None,
    search_providers: Sequence[BaseSearchProvider] | None = None,
    fetcher: ImageFetcher | None = None,
) -> Runtime:
    """Wire a Runtime from settings.

    Args:
        settings: Global settings. Loaded from .env if None.
        llm_client: Vision client. Built from settings if None.
        search_providers: App-store providers. iTunes only if None.
        fetcher: Image fetcher. Built from settings if None.
    """
    settings = settings or Settings()
    fetcher = fetcher or ImageFetcher(timeout_ms=settings.image_fetch_timeout_ms)
    client = llm_client or create_client_from_settings(settings)

    checksums = ChecksumService(
        source=settings.checksum_source,
        fetcher=fetcher if settings.checksum_source == "content" else None,
    )
    analysis_cache = (
        create_analysis_cache(settings, checksums=checksums)
        if settings.analysis_cache_enabled
        else None
    )

    rate_limiter = RateLimiter(default_wait_ms=settings.rate_limit_default_wait_ms)
    executor = RetryExecutor(policy=settings.retry_policy())
    vision = VisionService(client, fetcher, max_tokens=settings.vision_max_tokens)

    pipeline = AnalysisPipeline(
        vision=vision,
        cache=analysis_cache,
        rate_limiter=rate_limiter,
        executor=executor,
        batch_limiter=BatchLimiter(
            min(settings.max_screenshots_per_request, vision.max_screenshots)
        ),
        default_timeout_ms=settings.request_timeout_ms,
    )

    search_service = SearchService(
        providers=(
            search_providers
            if search_providers is not None
            else [ITunesSearchProvider(), PlayStoreSearchProvider()]
        ),
        cache=create_search_cache(settings),
        app_cache=create_app_details_cache(settings),
        executor=executor,
        default_limit=settings.search_default_limit,
    )

    logger.info(
        "Runtime ready: provider=%s, model=%s, analysis cache %s",
        client.provider_name, settings.vision_model,
        "enabled" if analysis_cache is not None else "disabled",
    )
    return Runtime(
        settings=settings,
        pipeline=pipeline,
        search_service=search_service,
        fetcher=fetcher,
        rate_limiter=rate_limiter,
        executor=executor,
        analysis_cache=analysis_cache,
    )


async def analyze(request: AnalyzeRequest, runtime: Runtime) -> AnalysisOutcome:
    """Analyze an app's screenshots end-to-end.

    Raises:
        VisionServiceError: When the analysis cannot be produced.
    """
    request_id = _generate_request_id()
    set_request_context(request_id, subject_id=request.subject_id)
    logger.info(
        "Starting analysis: subject_id=%s, screenshots=%d, force_refresh=%s",
        request.subject_id, len(request.screenshots), request.options.force_refresh,
    )
    try:
        return await runtime.pipeline.analyze(
            subject_id=request.subject_id,
            subject_name=request.subject_name,
            screenshots=request.screenshots,
            force_refresh=request.options.force_refresh,
            timeout_ms=request.options.timeout_ms,
        )
    finally:
        clear_context()


async def search(request: SearchRequest, runtime: Runtime) -> SearchResults:
    """Search the requested app stores (cached)."""
    set_request_context(_generate_request_id())
    try:
        return await runtime.search_service.search(
            request.query,
            platforms=request.platforms,
            country=request.country,
            language=request.language,
            limit=request.limit,
            force_refresh=request.force_refresh,
        )
    finally:
        clear_context()


def _generate_request_id() -> str:
    """Generate a request ID: yyyymmdd_hhmmss_{uuid4_short}."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{ts}_{uuid.uuid4().hex[:8]}"
