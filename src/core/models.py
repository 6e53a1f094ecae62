# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

Screenshot input, search results, batching, rate-limit status and the
pipeline outcome types all live here; caches keep their own models in
cache.models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

Platform = Literal["ios", "android"]

CacheStatus = Literal["checking", "hit", "miss", "storing", "stored", "store_failed"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# === SCREENSHOT SOURCE ===


class Screenshot(BaseModel):
    """One screenshot reference as provided by the screenshot source."""

    id: str
    url: str
    order: int = Field(ge=0)
    caption: str | None = None

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:  # noqa: N805
        if not v.strip():
            raise ValueError("screenshot id must be non-empty")
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:  # noqa: N805
        parsed = urlparse(v.strip())
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"screenshot url must be an absolute http(s) URL: {v!r}")
        return v.strip()


# === APP SEARCH ===


class AppSearchResult(BaseModel):
    """A single app returned by an app-store search provider."""

    id: str
    name: str
    developer: str = ""
    platform: Platform
    store_url: str = ""
    icon_url: str = ""
    bundle_id: str = ""
    genre: str = ""
    rating: float | None = None
    rating_count: int | None = None
    screenshots: list[str] = Field(default_factory=list)
    ipad_screenshots: list[str] = Field(default_factory=list)


class PlatformSearchOutcome(BaseModel):
    """Result of searching one platform."""

    platform: Platform
    results: list[AppSearchResult] = Field(default_factory=list)
    success: bool = False
    error: str | None = None


class SearchResults(BaseModel):
    """Combined results across the requested platforms."""

    query: str
    ios: list[AppSearchResult] = Field(default_factory=list)
    android: list[AppSearchResult] = Field(default_factory=list)
    ios_success: bool = False
    android_success: bool = False
    ios_error: str | None = None
    android_error: str | None = None
    from_cache: bool = False
    cache_entry_id: str | None = None

    @property
    def has_results(self) -> bool:
        return bool(self.ios or self.android)

    @property
    def any_success(self) -> bool:
        return self.ios_success or self.android_success

    @property
    def total_count(self) -> int:
        return len(self.ios) + len(self.android)


# === RESILIENCE ===


class BatchDecision(BaseModel):
    """Outcome of capping the number of items accepted for one call."""

    total_provided: int
    accepted: int
    was_truncated: bool
    max_allowed: int


class RateLimitStatus(BaseModel):
    """Snapshot of the shared rate-limit state for display or gating."""

    is_limited: bool
    wait_time_ms: int
    consecutive_hits: int


# === PIPELINE OUTPUT ===


class PipelineEvent(BaseModel):
    """A status change emitted while an analysis runs."""

    kind: Literal["cache", "batching", "retry", "rate_limit"]
    detail: str
    data: dict[str, Any] = Field(default_factory=dict)
    at: datetime = Field(default_factory=utc_now)


class AnalysisOutcome(BaseModel):
    """Successful analysis plus the cache/batching metadata gathered on the way."""

    analysis: dict[str, Any]
    from_cache: bool
    cache_entry_id: str | None = None
    cache_status: CacheStatus | None = None
    analyzed_at: str | None = None
    screenshots_analyzed: int
    was_truncated: bool = False
    batch: BatchDecision | None = None
    events: list[PipelineEvent] = Field(default_factory=list)

    def cache_statuses(self) -> list[str]:
        """Ordered cache status transitions seen during the run."""
        return [e.detail for e in self.events if e.kind == "cache"]
