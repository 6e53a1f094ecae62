# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides sample screenshots, a mock vision client, a mock image fetcher and
controllable clocks. No network access: all I/O is mocked.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from screenlens.config.settings import Settings
from screenlens.core.models import Screenshot
from screenlens.llm.models import ImageInput, LLMResponse


class FakeClock:
    """Wall clock for cache stores; only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += timedelta(milliseconds=ms)


class FakeMonotonic:
    """Monotonic clock in seconds for the rate limiter."""

    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, ms: int) -> None:
        self.value += ms / 1000


def make_screenshots(count: int, prefix: str = "shot") -> list[Screenshot]:
    return [
        Screenshot(id=f"{prefix}{i}", url=f"https://cdn.example.com/{prefix}{i}.png", order=i)
        for i in range(count)
    ]


SAMPLE_ANALYSIS = {
    "screens": [{"index": 0, "screenName": "Home", "screenType": "home"}],
    "designPatterns": [{"name": "Bottom tabs"}],
    "overallStyle": "minimal",
}


# === FIXTURES: Sample data ===


@pytest.fixture
def screenshots() -> list[Screenshot]:
    """Three ordered screenshots."""
    return make_screenshots(3)


@pytest.fixture
def screenshot_factory():
    """Builds n ordered screenshots: screenshot_factory(5, prefix="a")."""
    return make_screenshots


@pytest.fixture
def sample_analysis() -> dict:
    return json.loads(json.dumps(SAMPLE_ANALYSIS))


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, anthropic_api_key="test-key")  # type: ignore[call-arg]


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_monotonic() -> FakeMonotonic:
    return FakeMonotonic()


# === FIXTURES: Mock collaborators ===


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    """Vision response wrapping the sample analysis in a markdown fence."""
    return LLMResponse(
        content="```json\n" + json.dumps(SAMPLE_ANALYSIS) + "\n```",
        input_tokens=1200,
        output_tokens=300,
        model="claude-sonnet-4-20250514",
        provider="anthropic",
        latency_ms=900,
    )


@pytest.fixture
def mock_llm_client(mock_llm_response: LLMResponse) -> MagicMock:
    """Mock vision client returning the sample analysis."""
    client = MagicMock()
    client.complete_with_vision = AsyncMock(return_value=mock_llm_response)
    client.provider_name = "anthropic"
    client.supports_vision = True
    client.max_images_per_request = 10
    return client


@pytest.fixture
def mock_fetcher() -> MagicMock:
    """Mock image fetcher returning a tiny PNG payload per URL."""

    async def fetch(url: str, source_id: str | None = None) -> ImageInput:
        return ImageInput(
            data=b"\x89PNG" + url.encode(),
            media_type="image/png",
            source_id=source_id,
            source_url=url,
        )

    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(side_effect=fetch)
    fetcher.close = AsyncMock()
    return fetcher


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for asyncio.sleep that returns immediately."""
    return AsyncMock(return_value=None)
