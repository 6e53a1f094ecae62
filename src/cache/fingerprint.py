# src/cache/fingerprint.py — v1
"""Screenshot fingerprinting for checksum-based cache invalidation.

Each screenshot gets a SHA-256 checksum, either of its downloaded image bytes
("content" mode) or of its URL ("url" mode, no network). A screenshot set is
summarized by a combined fingerprint: SHA-256 over the per-item checksums
joined in screenshot order, so it changes when content OR order changes.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal, Sequence

from screenlens.cache.models import (
    BulkChecksumResult,
    ChecksumDiff,
    ChecksumErrorCode,
    ChecksumFailure,
    ChecksumRecord,
)
from screenlens.core.models import Screenshot

if TYPE_CHECKING:
    from screenlens.extraction.image_fetcher import ImageFetcher

logger = logging.getLogger(__name__)

CHECKSUM_DELIMITER = ":"

ChecksumSource = Literal["url", "content"]


class ChecksumError(Exception):
    """A screenshot (or a whole set) could not be fingerprinted."""

    def __init__(
        self,
        code: ChecksumErrorCode,
        message: str,
        url: str = "",
        item_id: str | None = None,
    ) -> None:
        self.code = code
        self.url = url
        self.item_id = item_id
        super().__init__(message)


def hash_bytes(data: bytes) -> str:
    """SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def hash_text(text: str) -> str:
    """SHA-256 hex digest of UTF-8 text."""
    return hash_bytes(text.encode("utf-8"))


def combine_checksums(
    records: Sequence[ChecksumRecord],
    order: Sequence[Screenshot] | Sequence[str] | None = None,
) -> str:
    """Combined fingerprint of an ordered checksum set.

    Records are arranged by the caller-supplied order (screenshots or ids);
    ids missing from the order sort last. Without an order, records are
    sorted by checksum so the result only depends on membership.
    """
    if order is not None:
        ids = [o.id if isinstance(o, Screenshot) else o for o in order]
        position = {item_id: i for i, item_id in enumerate(ids)}
        missing = len(position)
        arranged = sorted(records, key=lambda r: position.get(r.item_id, missing))
    else:
        arranged = sorted(records, key=lambda r: r.checksum)

    return hash_text(CHECKSUM_DELIMITER.join(r.checksum for r in arranged))


def diff_checksums(
    current: Sequence[ChecksumRecord],
    cached: Sequence[ChecksumRecord],
) -> ChecksumDiff:
    """Compare two checksum lists by item id.

    ``order_changed`` is True iff the relative order of the ids present in
    both lists differs.
    """
    current_map = {c.item_id: c.checksum for c in current}
    cached_map = {c.item_id: c.checksum for c in cached}

    added: list[str] = []
    changed: list[str] = []
    for item_id, checksum in current_map.items():
        cached_checksum = cached_map.get(item_id)
        if cached_checksum is None:
            added.append(item_id)
        elif cached_checksum != checksum:
            changed.append(item_id)

    removed = [item_id for item_id in cached_map if item_id not in current_map]

    common_current = [c.item_id for c in current if c.item_id in cached_map]
    common_cached = [c.item_id for c in cached if c.item_id in current_map]

    return ChecksumDiff(
        added=added,
        removed=removed,
        changed=changed,
        order_changed=common_current != common_cached,
    )


def sort_by_order(screenshots: Sequence[Screenshot]) -> list[Screenshot]:
    """Screenshots sorted by their ``order`` field (stable for ties)."""
    return sorted(screenshots, key=lambda s: s.order)


class ChecksumService:
    """Computes per-screenshot checksums and combined fingerprints.

    Args:
        source: "url" hashes the screenshot URL; "content" downloads the image
            through ``fetcher`` and hashes its bytes on a worker thread.
        fetcher: Required when source is "content".
    """

    def __init__(
        self,
        source: ChecksumSource = "url",
        fetcher: ImageFetcher | None = None,
    ) -> None:
        if source == "content" and fetcher is None:
            raise ValueError("content checksums require an ImageFetcher")
        self._source = source
        self._fetcher = fetcher

    @property
    def source(self) -> ChecksumSource:
        return self._source

    async def fingerprint(self, screenshot: Screenshot) -> ChecksumRecord:
        """Checksum one screenshot.

        Raises:
            ChecksumError: FETCH_FAILED / TIMEOUT / INVALID_IMAGE when content
                retrieval fails, HASH_FAILED when hashing itself fails.
        """
        if self._source == "content":
            data = await self._fetch_content(screenshot)
            try:
                checksum = await asyncio.to_thread(hash_bytes, data)
            except Exception as e:
                raise ChecksumError("HASH_FAILED", str(e), screenshot.url, screenshot.id) from e
        else:
            try:
                checksum = hash_text(screenshot.url)
            except Exception as e:
                raise ChecksumError("HASH_FAILED", str(e), screenshot.url, screenshot.id) from e

        return ChecksumRecord(
            item_id=screenshot.id,
            checksum=checksum,
            source_ref=screenshot.url,
            generated_at=datetime.now(timezone.utc),
        )

    async def fingerprint_all(self, screenshots: Sequence[Screenshot]) -> BulkChecksumResult:
        """Checksum every screenshot, collecting failures instead of raising.

        Records keep the input order. ``progress`` holds the completion
        percentage after each item.
        """
        result = BulkChecksumResult()
        total = len(screenshots)
        outcomes = await asyncio.gather(
            *(self.fingerprint(s) for s in screenshots), return_exceptions=True
        )

        for i, (screenshot, outcome) in enumerate(zip(screenshots, outcomes), start=1):
            if isinstance(outcome, ChecksumRecord):
                result.checksums.append(outcome)
            elif isinstance(outcome, ChecksumError):
                result.failures.append(
                    ChecksumFailure(screenshot=screenshot, code=outcome.code, message=str(outcome))
                )
            elif isinstance(outcome, Exception):
                result.failures.append(
                    ChecksumFailure(screenshot=screenshot, code="HASH_FAILED", message=str(outcome))
                )
            else:
                raise outcome
            result.progress.append(round(i / total * 100))

        if result.failures:
            logger.warning(
                "Checksum generation failed for %d of %d screenshots",
                len(result.failures), total,
            )
        return result

    def combine(
        self,
        records: Sequence[ChecksumRecord],
        order: Sequence[Screenshot] | Sequence[str] | None = None,
    ) -> str:
        return combine_checksums(records, order)

    def diff(
        self,
        current: Sequence[ChecksumRecord],
        cached: Sequence[ChecksumRecord],
    ) -> ChecksumDiff:
        return diff_checksums(current, cached)

    async def _fetch_content(self, screenshot: Screenshot) -> bytes:
        from screenlens.extraction.image_fetcher import ImageFetchError

        assert self._fetcher is not None
        try:
            image = await self._fetcher.fetch(screenshot.url, source_id=screenshot.id)
        except ImageFetchError as e:
            raise ChecksumError(e.code, str(e), screenshot.url, screenshot.id) from e
        return image.data
