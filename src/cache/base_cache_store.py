# src/cache/base_cache_store.py — v1
"""Abstract cache store interface.

Both the analysis cache and the search caches sit on top of this interface;
they differ only in key type, payload type and sizing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Generic, Hashable, Iterator, TypeVar

from screenlens.cache.models import CacheEntry, CacheStats, MissReason

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BaseCacheStore(ABC, Generic[K, V]):
    """Unified interface for bounded key/value cache stores."""

    @abstractmethod
    def fetch(self, key: K) -> tuple[CacheEntry[V] | None, MissReason | None]:
        """Return (entry, None) on a hit, (None, reason) on a miss."""

    def get(self, key: K) -> CacheEntry[V] | None:
        """Retrieve a live entry, touching its recency. None on miss."""
        entry, _ = self.fetch(key)
        return entry

    @abstractmethod
    def set(self, key: K, value: V) -> CacheEntry[V]:
        """Insert or replace the entry for key."""

    @abstractmethod
    def has(self, key: K) -> bool:
        """Whether a live entry exists, without touching recency or stats."""

    @abstractmethod
    def delete(self, key: K) -> bool:
        """Remove an entry. Returns True if it existed."""

    @abstractmethod
    def delete_where(self, predicate: Callable[[K, V], bool]) -> int:
        """Remove every entry matching predicate. Returns count removed."""

    @abstractmethod
    def entries(self) -> Iterator[CacheEntry[V]]:
        """Iterate over live entries, least recently used first."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries."""

    @abstractmethod
    def stats(self) -> CacheStats:
        """Current statistics."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of stored entries (expired ones included until touched)."""
