# src/cache/memory_store.py — v1
"""In-memory cache store with LRU eviction and two-tier expiration.

An entry expires when it is older than ``max_age_ms`` (measured from
creation, never reset) or idle for longer than ``ttl_ms`` (measured from the
last successful get). Recency order is kept in an OrderedDict, so touch and
eviction are O(1). A single lock per store makes get/set/delete atomic with
respect to each other; no lock is held across an await.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Callable, Hashable, Iterator, TypeVar

from screenlens.cache.base_cache_store import BaseCacheStore
from screenlens.cache.models import CacheEntry, CacheStats, MissReason

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryCacheStore(BaseCacheStore[K, V]):
    """Bounded, thread-safe LRU store.

    Args:
        max_entries: Hard cap on stored entries.
        ttl_ms: Sliding expiration measured from last access.
        max_age_ms: Absolute expiration measured from creation. None disables it.
        name: Label used in log messages and generated entry ids.
        clock: Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        max_entries: int,
        ttl_ms: int,
        max_age_ms: int | None = None,
        name: str = "cache",
        clock: Clock | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if ttl_ms < 0:
            raise ValueError("ttl_ms must be >= 0")
        if max_age_ms is not None and max_age_ms < 0:
            raise ValueError("max_age_ms must be >= 0")

        self._max_entries = max_entries
        self._ttl = timedelta(milliseconds=ttl_ms)
        self._max_age = timedelta(milliseconds=max_age_ms) if max_age_ms is not None else None
        self._name = name
        self._clock = clock or _utc_now
        self._entries: OrderedDict[K, CacheEntry[V]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def fetch(self, key: K) -> tuple[CacheEntry[V] | None, MissReason | None]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug("[%s] miss: %s", self._name, key)
                return None, "NO_CACHE_ENTRY"

            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[key]
                self._misses += 1
                self._expirations += 1
                logger.debug("[%s] expired: %s", self._name, key)
                return None, "ENTRY_EXPIRED"

            entry.last_accessed_at = now
            entry.access_count += 1
            self._entries.move_to_end(key)
            self._hits += 1
            logger.debug("[%s] hit: %s", self._name, key)
            return entry, None

    def set(self, key: K, value: V) -> CacheEntry[V]:
        with self._lock:
            now = self._clock()
            # Replacing a key never costs another key its slot
            self._entries.pop(key, None)

            while len(self._entries) >= self._max_entries:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("[%s] evicted: %s", self._name, evicted_key)

            entry = CacheEntry(
                id=f"{self._name}-{uuid.uuid4().hex[:12]}",
                key=key,
                payload=value,
                created_at=now,
                last_accessed_at=now,
            )
            self._entries[key] = entry
            logger.debug("[%s] cached: %s", self._name, key)
            return entry

    def has(self, key: K) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._is_expired(entry, self._clock())

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def delete_where(self, predicate: Callable[[K, V], bool]) -> int:
        with self._lock:
            doomed = [k for k, e in self._entries.items() if predicate(k, e.payload)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def entries(self) -> Iterator[CacheEntry[V]]:
        with self._lock:
            now = self._clock()
            live = [e for e in self._entries.values() if not self._is_expired(e, now)]
        return iter(live)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("[%s] cleared", self._name)

    def stats(self) -> CacheStats:
        with self._lock:
            created = [e.created_at for e in self._entries.values()]
            size = sum(_estimate_size(e) for e in self._entries.values())
            total = self._hits + self._misses
            return CacheStats(
                entry_count=len(self._entries),
                max_entries=self._max_entries,
                total_hits=self._hits,
                total_misses=self._misses,
                hit_rate=(self._hits / total) * 100 if total else 0.0,
                evictions=self._evictions,
                expirations=self._expirations,
                memory_size_estimate=size,
                oldest_entry=min(created) if created else None,
                newest_entry=max(created) if created else None,
            )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]

    def _is_expired(self, entry: CacheEntry[V], now: datetime) -> bool:
        if self._max_age is not None and now - entry.created_at > self._max_age:
            return True
        return now - entry.last_accessed_at > self._ttl


def _estimate_size(entry: CacheEntry) -> int:
    """Rough byte size of an entry's payload, for stats only."""
    payload = entry.payload
    dump = getattr(payload, "model_dump_json", None)
    if dump is not None:
        return len(dump())
    try:
        return len(json.dumps(payload, default=_default_repr))
    except (TypeError, ValueError):
        return len(repr(payload))


def _default_repr(obj: object) -> object:
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")  # type: ignore[union-attr]
    if hasattr(obj, "__dict__"):
        return vars(obj)
    return repr(obj)
