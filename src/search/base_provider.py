# src/search/base_provider.py — v1
"""Abstract app-store search provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from screenlens.core.models import AppSearchResult, Platform


class BaseSearchProvider(ABC):
    """One app store. Implementations raise VisionServiceError on failure."""

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Platform served by this provider."""

    @abstractmethod
    async def search(
        self,
        query: str,
        country: str = "us",
        language: str = "en",
        limit: int = 10,
    ) -> list[AppSearchResult]:
        """Apps matching query. An empty list means no results, not failure."""

    @abstractmethod
    async def get_app(
        self, app_id: str, country: str = "us", language: str = "en"
    ) -> AppSearchResult | None:
        """Details of one app, None if the store does not know it."""

    async def close(self) -> None:
        """Release network resources."""
