# src/cache/models.py — v1
"""Cache domain models: checksums, cache entries, cache keys and lookup results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from screenlens.core.models import AppSearchResult, Platform, Screenshot

V = TypeVar("V")

ChecksumErrorCode = Literal["FETCH_FAILED", "HASH_FAILED", "INVALID_IMAGE", "TIMEOUT"]

MissReason = Literal[
    "NO_CACHE_ENTRY",
    "ENTRY_EXPIRED",
    "SCREENSHOT_COUNT_CHANGED",
    "SCREENSHOT_ORDER_CHANGED",
    "CHECKSUM_MISMATCH",
    "FORCE_REFRESH",
    "QUERY_TOO_SHORT",
    "PLATFORM_MISMATCH",
]


# === CHECKSUMS ===


class ChecksumRecord(BaseModel):
    """Fingerprint of a single screenshot. Produced once, never mutated."""

    model_config = ConfigDict(frozen=True)

    item_id: str
    checksum: str
    source_ref: str
    generated_at: datetime


class ChecksumFailure(BaseModel):
    """A screenshot whose fingerprint could not be computed."""

    screenshot: Screenshot
    code: ChecksumErrorCode
    message: str


class BulkChecksumResult(BaseModel):
    """Fingerprints for a screenshot set, with per-item failures kept apart."""

    checksums: list[ChecksumRecord] = Field(default_factory=list)
    failures: list[ChecksumFailure] = Field(default_factory=list)
    progress: list[int] = Field(default_factory=list)

    @property
    def all_successful(self) -> bool:
        return not self.failures


class ChecksumDiff(BaseModel):
    """Difference between a current and a cached checksum list, by item id."""

    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    changed: list[str] = Field(default_factory=list)
    order_changed: bool = False

    @property
    def is_match(self) -> bool:
        return not (self.added or self.removed or self.changed or self.order_changed)

    @property
    def affected_ids(self) -> list[str]:
        return [*self.changed, *self.added, *self.removed]


# === GENERIC STORE ===


@dataclass
class CacheEntry(Generic[V]):
    """Single entry owned by a cache store. Mutated only through get/set."""

    id: str
    key: Any
    payload: V
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = 0


class CacheStats(BaseModel):
    """Point-in-time statistics of a cache store."""

    entry_count: int
    max_entries: int
    total_hits: int
    total_misses: int
    hit_rate: float
    evictions: int = 0
    expirations: int = 0
    memory_size_estimate: int = 0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None


# === KEYS ===


@dataclass(frozen=True)
class AnalysisCacheKey:
    """Key of an analysis: subject, combined fingerprint and screenshot count."""

    subject_id: str
    combined_fingerprint: str
    item_count: int

    def __str__(self) -> str:
        return f"{self.subject_id}:{self.combined_fingerprint}:{self.item_count}"


@dataclass(frozen=True)
class SearchCacheKey:
    """Key of a search: normalized query, sorted platforms, country, language."""

    query: str
    platforms: tuple[str, ...]
    country: str
    language: str

    def __str__(self) -> str:
        return f"search:{self.query}:{','.join(self.platforms)}:{self.country}:{self.language}"


# === ANALYSIS CACHE PAYLOAD / RESULTS ===


@dataclass
class AnalysisCacheRecord:
    """What the analysis cache stores for a subject."""

    subject_id: str
    combined_fingerprint: str
    checksums: list[ChecksumRecord]
    analysis: dict[str, Any]


class CacheLookupResult(BaseModel):
    """Result of an analysis cache lookup."""

    hit: bool
    payload: dict[str, Any] | None = None
    entry_id: str | None = None
    miss_reason: MissReason | None = None
    lookup_time_ms: float = 0.0

    @classmethod
    def miss(cls, reason: MissReason, lookup_time_ms: float = 0.0) -> CacheLookupResult:
        return cls(hit=False, miss_reason=reason, lookup_time_ms=lookup_time_ms)


class CacheValidationResult(BaseModel):
    """Result of validating cached analysis against current screenshots."""

    is_valid: bool
    cached_analysis: dict[str, Any] | None = None
    cache_entry_id: str | None = None
    invalidation_reason: MissReason | None = None
    changed_screenshots: list[str] = Field(default_factory=list)


# === SEARCH CACHE PAYLOAD / RESULTS ===


@dataclass
class SearchCacheRecord:
    """What the search cache stores for a query."""

    query: str
    platforms: list[Platform]
    country: str
    language: str
    ios_results: list[AppSearchResult] = field(default_factory=list)
    android_results: list[AppSearchResult] = field(default_factory=list)
    ios_success: bool = False
    android_success: bool = False
    ios_error: str | None = None
    android_error: str | None = None


class SearchCacheLookupResult(BaseModel):
    """Result of a search cache lookup."""

    hit: bool
    ios_results: list[AppSearchResult] | None = None
    android_results: list[AppSearchResult] | None = None
    ios_success: bool = False
    android_success: bool = False
    ios_error: str | None = None
    android_error: str | None = None
    entry_id: str | None = None
    miss_reason: MissReason | None = None
    lookup_time_ms: float = 0.0

    @classmethod
    def miss(cls, reason: MissReason, lookup_time_ms: float = 0.0) -> SearchCacheLookupResult:
        return cls(hit=False, miss_reason=reason, lookup_time_ms=lookup_time_ms)
