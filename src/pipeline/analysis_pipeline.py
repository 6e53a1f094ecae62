# src/pipeline/analysis_pipeline.py — v1
"""Analysis pipeline: the entry point for analyzing one app's screenshots.

Steps, in order:
  1. reject empty input
  2. cap the screenshot count to the provider limit
  3. consult the analysis cache (unless force_refresh)
  4. refuse early while the service has asked us to back off
  5. load images, then call the vision model under retry + per-attempt deadline
  6. store the fresh analysis in the cache

Every status change is recorded as a PipelineEvent on the returned outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from screenlens.cache.analysis_cache import AnalysisCache
from screenlens.core.models import (
    AnalysisOutcome,
    CacheStatus,
    PipelineEvent,
    Screenshot,
)
from screenlens.llm.batch import BatchLimiter
from screenlens.llm.errors import VisionServiceError, create_service_error
from screenlens.llm.rate_limiter import RateLimiter
from screenlens.llm.retry import RetryExecutor, RetryPolicy
from screenlens.llm.vision_service import VisionService
from screenlens.logging.context import set_operation_context, set_subject_context

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60_000


class AnalysisPipeline:
    """Orchestrates cache, rate limiting, batching and retries around VisionService.

    Usage:
        pipeline = AnalysisPipeline(vision, cache, limiter, executor)
        outcome = await pipeline.analyze("123", "Headspace", screenshots)
    """

    def __init__(
        self,
        vision: VisionService,
        cache: AnalysisCache | None,
        rate_limiter: RateLimiter,
        executor: RetryExecutor,
        batch_limiter: BatchLimiter | None = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._vision = vision
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._executor = executor
        self._batch_limiter = batch_limiter or BatchLimiter(vision.max_screenshots)
        self._default_timeout_ms = default_timeout_ms

    @property
    def cache(self) -> AnalysisCache | None:
        return self._cache

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    async def analyze(
        self,
        subject_id: str,
        subject_name: str,
        screenshots: Sequence[Screenshot],
        force_refresh: bool = False,
        timeout_ms: int | None = None,
        policy: RetryPolicy | None = None,
    ) -> AnalysisOutcome:
        """Analyze a screenshot set, reusing a cached analysis when valid.

        Raises:
            VisionServiceError: VALIDATION_ERROR for empty input, RATE_LIMITED
                while backing off, or the last error once retries run out.
        """
        set_subject_context(subject_id)
        events: list[PipelineEvent] = []

        if not screenshots:
            raise create_service_error("VALIDATION_ERROR", "No screenshots provided for analysis")

        # --- Batching ---
        accepted, decision = self._batch_limiter.decide(screenshots)
        if decision.was_truncated:
            logger.warning(
                "Analysis limited to first %d screenshots (%d provided)",
                decision.max_allowed, decision.total_provided,
            )
        events.append(
            PipelineEvent(kind="batching", detail="decided", data=decision.model_dump())
        )

        def cache_event(status: CacheStatus, **data: Any) -> None:
            events.append(PipelineEvent(kind="cache", detail=status, data=data))

        # --- Cache lookup ---
        if self._cache is not None and not force_refresh:
            set_operation_context("cache_lookup")
            cache_event("checking")
            try:
                lookup = await self._cache.lookup(subject_id, accepted)
            except Exception as e:  # noqa: BLE001
                logger.warning("Cache lookup failed, proceeding with fresh analysis: %s", e)
                cache_event("miss", reason="LOOKUP_FAILED")
            else:
                if lookup.hit and lookup.payload is not None:
                    cache_event("hit", entry_id=lookup.entry_id)
                    logger.info(
                        "Cache hit for %s (entry %s, %.1fms)",
                        subject_id, lookup.entry_id, lookup.lookup_time_ms,
                    )
                    return AnalysisOutcome(
                        analysis=lookup.payload,
                        from_cache=True,
                        cache_entry_id=lookup.entry_id,
                        cache_status="hit",
                        analyzed_at=lookup.payload.get("analyzedAt"),
                        screenshots_analyzed=decision.accepted,
                        was_truncated=decision.was_truncated,
                        batch=decision,
                        events=events,
                    )
                cache_event("miss", reason=lookup.miss_reason)
                logger.info("Cache miss for %s: %s", subject_id, lookup.miss_reason)
        elif self._cache is not None:
            logger.info("Force refresh requested, skipping cache for %s", subject_id)
            cache_event("miss", reason="FORCE_REFRESH")

        # --- Rate-limit gate ---
        wait_ms = self._rate_limiter.wait_time_ms()
        if wait_ms > 0:
            logger.warning("Refusing analysis for %s: rate limited for %dms", subject_id, wait_ms)
            raise create_service_error(
                "RATE_LIMITED",
                f"Rate limited. Please wait {-(-wait_ms // 1000)} seconds.",
                retry_after_ms=wait_ms,
            )

        # --- Vision call ---
        set_operation_context("vision_call")
        images = await self._vision.load_images(accepted)
        deadline_ms = timeout_ms or self._default_timeout_ms

        def on_retry(attempt: int, error: VisionServiceError, delay_ms: int) -> None:
            set_operation_context("vision_call", attempt=attempt + 1)
            if error.code == "RATE_LIMITED":
                self._rate_limiter.record_throttle_signal(error.retry_after_ms)
                events.append(
                    PipelineEvent(
                        kind="rate_limit",
                        detail="throttled",
                        data={"retry_after_ms": error.retry_after_ms},
                    )
                )
            events.append(
                PipelineEvent(
                    kind="retry",
                    detail=error.code,
                    data={"attempt": attempt, "delay_ms": delay_ms, "message": error.message},
                )
            )

        try:
            analysis = await self._executor.execute(
                lambda: self._executor.with_deadline(
                    lambda: self._vision.complete(subject_name, images), deadline_ms
                ),
                policy=policy,
                on_retry=on_retry,
            )
        except VisionServiceError as e:
            # Final attempt never reaches on_retry
            if e.code == "RATE_LIMITED":
                self._rate_limiter.record_throttle_signal(e.retry_after_ms)
            logger.error("Analysis failed for %s: %s", subject_id, e)
            raise
        self._rate_limiter.clear()

        # --- Cache store ---
        entry_id: str | None = None
        store_status: CacheStatus | None = None
        if self._cache is not None:
            set_operation_context("cache_store")
            cache_event("storing")
            try:
                entry_id = await self._cache.store(subject_id, accepted, analysis)
            except Exception as e:  # noqa: BLE001
                logger.warning("Failed to store analysis in cache for %s: %s", subject_id, e)
                cache_event("store_failed", error=str(e))
                store_status = "store_failed"
            else:
                cache_event("stored", entry_id=entry_id)
                store_status = "stored"

        return AnalysisOutcome(
            analysis=analysis,
            from_cache=False,
            cache_entry_id=entry_id,
            cache_status=store_status,
            analyzed_at=analysis.get("analyzedAt"),
            screenshots_analyzed=len(images),
            was_truncated=decision.was_truncated,
            batch=decision,
            events=events,
        )

    def status(self) -> dict[str, Any]:
        """Rate-limit state and effective limits, for status endpoints."""
        rate = self._rate_limiter.status()
        data: dict[str, Any] = {
            "provider": self._vision.provider_name,
            "rateLimit": {
                "isLimited": rate.is_limited,
                "waitTimeMs": rate.wait_time_ms,
                "consecutiveHits": rate.consecutive_hits,
            },
            "maxScreenshotsPerRequest": self._batch_limiter.max_allowed,
            "defaultTimeoutMs": self._default_timeout_ms,
        }
        if self._cache is not None:
            data["analysisCache"] = self._cache.stats().model_dump(mode="json")
        return data
