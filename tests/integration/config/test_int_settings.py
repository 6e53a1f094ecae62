# tests/integration/config/test_int_settings.py — v1
"""Integration tests for configuration loading.

Tests Settings with real .env files, validation rules and the objects built
from them (retry policy, caches). No external services required.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from screenlens.cache.cache_factory import create_analysis_cache, create_search_cache
from screenlens.config.settings import ConfigurationError, Settings


class TestSettingsLoading:

    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.vision_provider == "anthropic"
        assert settings.analysis_cache_enabled is True
        assert settings.search_cache_ttl_ms == 5 * 60 * 1000

    def test_from_env_file(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "VISION_PROVIDER=google\n"
            "VISION_MODEL=gemini-1.5-pro\n"
            "GOOGLE_API_KEY=g-key\n"
            "ANALYSIS_CACHE_MAX_ENTRIES=5\n"
            "RETRY_MAX_RETRIES=1\n"
            "RETRY_JITTER_FACTOR=0\n"
            "CHECKSUM_SOURCE=content\n"
            "LOG_FORMAT=text\n"
        )
        settings = Settings(_env_file=str(env_file))
        assert settings.vision_provider == "google"
        assert settings.vision_api_key == "g-key"
        assert settings.analysis_cache_max_entries == 5
        assert settings.checksum_source == "content"
        assert settings.log_format == "text"

        policy = settings.retry_policy()
        assert policy.max_retries == 1
        assert policy.jitter_factor == 0

    def test_inconsistent_env_file_rejected(self, tmp_path: Path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "SEARCH_CACHE_TTL_MS=7200000\n"
            "SEARCH_CACHE_MAX_AGE_MS=3600000\n"
        )
        with pytest.raises(ConfigurationError, match="SEARCH_CACHE_TTL_MS"):
            Settings(_env_file=str(env_file))


class TestSettingsDriveComponents:

    def test_caches_sized_from_settings(self):
        settings = Settings(
            _env_file=None, analysis_cache_max_entries=3, search_cache_max_entries=7
        )
        analysis = create_analysis_cache(settings)
        search = create_search_cache(settings)
        assert analysis.stats().max_entries == 3
        assert search.stats().max_entries == 7

    def test_default_retry_policy(self):
        policy = Settings(_env_file=None).retry_policy()
        assert policy.max_retries == 3
        assert policy.initial_delay_ms == 1000
        assert policy.max_delay_ms == 30_000
