# src/cache/analysis_cache.py — v1
"""Analysis cache: vision results keyed by subject + screenshot fingerprints.

A cached analysis is only returned when the screenshots are identical, in
content and in order, to the ones that produced it. Stale entries found
during validation are evicted on the spot.
"""

from __future__ import annotations

import copy
import logging
import time
from typing import Any, Sequence

from screenlens.cache.base_cache_store import BaseCacheStore
from screenlens.cache.fingerprint import ChecksumError, ChecksumService, sort_by_order
from screenlens.cache.models import (
    AnalysisCacheKey,
    AnalysisCacheRecord,
    CacheEntry,
    CacheLookupResult,
    CacheStats,
    CacheValidationResult,
)
from screenlens.core.models import Screenshot

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000


class AnalysisCache:
    """Checksum-validated cache of analysis documents.

    Args:
        store: Backing store (sized by the caller, see cache_factory).
        checksums: Fingerprinting service.
    """

    def __init__(
        self,
        store: BaseCacheStore[AnalysisCacheKey, AnalysisCacheRecord],
        checksums: ChecksumService | None = None,
    ) -> None:
        self._store = store
        self._checksums = checksums or ChecksumService()

    @property
    def checksums(self) -> ChecksumService:
        return self._checksums

    async def build_key(
        self, subject_id: str, screenshots: Sequence[Screenshot]
    ) -> AnalysisCacheKey:
        """Cache key for a screenshot set.

        Raises:
            ChecksumError: If no screenshot could be fingerprinted.
        """
        ordered = sort_by_order(screenshots)
        bulk = await self._checksums.fingerprint_all(ordered)
        if not bulk.checksums:
            first = bulk.failures[0] if bulk.failures else None
            raise ChecksumError(
                first.code if first else "HASH_FAILED",
                f"Failed to generate checksums for all screenshots: "
                f"{first.message if first else 'no screenshots'}",
                url=first.screenshot.url if first else "",
            )
        return AnalysisCacheKey(
            subject_id=subject_id,
            combined_fingerprint=self._checksums.combine(bulk.checksums, ordered),
            item_count=len(ordered),
        )

    async def lookup(
        self,
        subject_id: str,
        screenshots: Sequence[Screenshot],
        skip_validation: bool = False,
    ) -> CacheLookupResult:
        """Look up a cached analysis for these screenshots.

        Never raises: fingerprinting problems are reported as a miss.
        """
        start = time.monotonic()

        if not screenshots:
            return CacheLookupResult.miss("NO_CACHE_ENTRY", _elapsed_ms(start))

        try:
            key = await self.build_key(subject_id, screenshots)
        except ChecksumError as e:
            logger.warning("Failed to generate cache key for %s: %s", subject_id, e)
            return CacheLookupResult.miss("NO_CACHE_ENTRY", _elapsed_ms(start))

        entry, reason = self._store.fetch(key)
        if entry is None:
            return CacheLookupResult.miss(reason or "NO_CACHE_ENTRY", _elapsed_ms(start))

        if not skip_validation:
            validation = await self._validate_entry(entry, screenshots, key)
            if not validation.is_valid:
                self._store.delete(key)
                logger.info(
                    "Evicted stale analysis for %s: %s",
                    subject_id, validation.invalidation_reason,
                )
                return CacheLookupResult.miss(
                    validation.invalidation_reason or "CHECKSUM_MISMATCH",
                    _elapsed_ms(start),
                )

        return CacheLookupResult(
            hit=True,
            payload=copy.deepcopy(entry.payload.analysis),
            entry_id=entry.id,
            lookup_time_ms=_elapsed_ms(start),
        )

    async def has_entry(self, subject_id: str, screenshots: Sequence[Screenshot]) -> bool:
        """Existence check without validation, recency update or stats."""
        if not screenshots:
            return False
        try:
            key = await self.build_key(subject_id, screenshots)
        except ChecksumError:
            return False
        return self._store.has(key)

    async def store(
        self,
        subject_id: str,
        screenshots: Sequence[Screenshot],
        analysis: dict[str, Any],
    ) -> str:
        """Cache an analysis and return the new entry id.

        Individual fingerprint failures are tolerated as long as one
        screenshot succeeds.

        Raises:
            ChecksumError: If there are no screenshots or all of them fail.
        """
        if not screenshots:
            raise ChecksumError("HASH_FAILED", "Cannot cache analysis with no screenshots")

        ordered = sort_by_order(screenshots)
        bulk = await self._checksums.fingerprint_all(ordered)

        if not bulk.checksums:
            first = bulk.failures[0]
            raise ChecksumError(
                first.code, first.message, url=first.screenshot.url, item_id=first.screenshot.id
            )
        if not bulk.all_successful:
            logger.warning(
                "Checksum generation had %d failures, continuing with %d checksums",
                len(bulk.failures), len(bulk.checksums),
            )

        combined = self._checksums.combine(bulk.checksums, ordered)
        key = AnalysisCacheKey(
            subject_id=subject_id,
            combined_fingerprint=combined,
            item_count=len(ordered),
        )
        entry = self._store.set(
            key,
            AnalysisCacheRecord(
                subject_id=subject_id,
                combined_fingerprint=combined,
                checksums=bulk.checksums,
                analysis=copy.deepcopy(analysis),
            ),
        )
        logger.info(
            "Stored analysis for %s with %d screenshots (entry %s)",
            subject_id, len(ordered), entry.id,
        )
        return entry.id

    async def validate(
        self,
        subject_id: str,
        screenshots: Sequence[Screenshot],
        force_refresh: bool = False,
    ) -> CacheValidationResult:
        """Whether a valid cached analysis exists for these screenshots."""
        if force_refresh:
            return CacheValidationResult(is_valid=False, invalidation_reason="FORCE_REFRESH")

        lookup = await self.lookup(subject_id, screenshots)
        if not lookup.hit:
            return CacheValidationResult(is_valid=False, invalidation_reason=lookup.miss_reason)

        return CacheValidationResult(
            is_valid=True,
            cached_analysis=lookup.payload,
            cache_entry_id=lookup.entry_id,
        )

    def invalidate(self, subject_id: str) -> int:
        """Drop every cached analysis of a subject. Returns count removed."""
        count = self._store.delete_where(lambda _key, record: record.subject_id == subject_id)
        logger.info("Invalidated %d entries for %s", count, subject_id)
        return count

    def entries_for(self, subject_id: str) -> list[CacheEntry[AnalysisCacheRecord]]:
        """Live entries of a subject, for inspection."""
        return [e for e in self._store.entries() if e.payload.subject_id == subject_id]

    def clear(self) -> None:
        self._store.clear()

    def stats(self) -> CacheStats:
        return self._store.stats()

    async def _validate_entry(
        self,
        entry: CacheEntry[AnalysisCacheRecord],
        screenshots: Sequence[Screenshot],
        key: AnalysisCacheKey,
    ) -> CacheValidationResult:
        record = entry.payload

        if len(screenshots) != len(record.checksums):
            return CacheValidationResult(
                is_valid=False, invalidation_reason="SCREENSHOT_COUNT_CHANGED"
            )

        if record.combined_fingerprint != key.combined_fingerprint:
            ordered = sort_by_order(screenshots)
            current = await self._checksums.fingerprint_all(ordered)
            diff = self._checksums.diff(current.checksums, record.checksums)
            return CacheValidationResult(
                is_valid=False,
                invalidation_reason=(
                    "SCREENSHOT_ORDER_CHANGED" if diff.order_changed else "CHECKSUM_MISMATCH"
                ),
                changed_screenshots=diff.affected_ids,
            )

        return CacheValidationResult(
            is_valid=True,
            cached_analysis=record.analysis,
            cache_entry_id=entry.id,
        )
