# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for provider credentials, cache sizing, retry policy,
batching limits and logging. All durations are expressed in milliseconds.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from screenlens.llm.retry import RetryPolicy

_MINUTE_MS = 60 * 1000
_HOUR_MS = 60 * _MINUTE_MS
_DAY_MS = 24 * _HOUR_MS


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Vision provider ===
    vision_provider: str = "anthropic"
    vision_model: str = "claude-sonnet-4-20250514"
    vision_max_tokens: int = 8192

    # Provider API keys
    anthropic_api_key: str = ""
    google_api_key: str = ""

    # === Analysis cache ===
    analysis_cache_enabled: bool = True
    analysis_cache_max_entries: int = 50
    analysis_cache_ttl_ms: int = 7 * _DAY_MS
    analysis_cache_max_age_ms: int = 30 * _DAY_MS

    # === Search cache ===
    search_cache_max_entries: int = 100
    search_cache_ttl_ms: int = 5 * _MINUTE_MS
    search_cache_max_age_ms: int = _HOUR_MS
    search_min_query_length: int = 2
    search_default_country: str = "us"
    search_default_language: str = "en"
    search_default_limit: int = 10

    # === App details cache ===
    app_details_cache_max_entries: int = 200
    app_details_cache_ttl_ms: int = 30 * _MINUTE_MS

    # === Retry policy ===
    retry_max_retries: int = 3
    retry_initial_delay_ms: int = 1000
    retry_max_delay_ms: int = 30_000
    retry_backoff_multiplier: float = 2.0
    retry_jitter_factor: float = 0.1

    # === Rate limiting ===
    rate_limit_default_wait_ms: int = 30_000

    # === Batching and timeouts ===
    max_screenshots_per_request: int = 10
    request_timeout_ms: int = 60_000
    image_fetch_timeout_ms: int = 30_000
    checksum_source: Literal["url", "content"] = "url"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "analysis_cache_max_entries",
        "search_cache_max_entries",
        "app_details_cache_max_entries",
        "max_screenshots_per_request",
        "search_min_query_length",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("retry_max_retries", "rate_limit_default_wait_ms")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.analysis_cache_ttl_ms > self.analysis_cache_max_age_ms:
            errors.append(
                "ANALYSIS_CACHE_TTL_MS must be <= ANALYSIS_CACHE_MAX_AGE_MS"
            )

        if self.search_cache_ttl_ms > self.search_cache_max_age_ms:
            errors.append("SEARCH_CACHE_TTL_MS must be <= SEARCH_CACHE_MAX_AGE_MS")

        if self.retry_initial_delay_ms > self.retry_max_delay_ms:
            errors.append("RETRY_INITIAL_DELAY_MS must be <= RETRY_MAX_DELAY_MS")

        if not 0.0 <= self.retry_jitter_factor <= 1.0:
            errors.append("RETRY_JITTER_FACTOR must be between 0 and 1")

        if self.retry_backoff_multiplier < 1.0:
            errors.append("RETRY_BACKOFF_MULTIPLIER must be >= 1")

        if not 1000 <= self.request_timeout_ms <= 300_000:
            errors.append("REQUEST_TIMEOUT_MS must be between 1000 and 300000")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    def retry_policy(self) -> RetryPolicy:
        """Build the default retry policy from the retry_* fields."""
        from screenlens.llm.retry import RetryPolicy

        return RetryPolicy(
            max_retries=self.retry_max_retries,
            initial_delay_ms=self.retry_initial_delay_ms,
            max_delay_ms=self.retry_max_delay_ms,
            backoff_multiplier=self.retry_backoff_multiplier,
            jitter_factor=self.retry_jitter_factor,
        )

    @property
    def vision_api_key(self) -> str:
        """API key for the configured vision provider."""
        if self.vision_provider == "google":
            return self.google_api_key
        return self.anthropic_api_key


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
