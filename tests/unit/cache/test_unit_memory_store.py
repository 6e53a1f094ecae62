# tests/unit/cache/test_unit_memory_store.py — v1
"""Tests for cache/memory_store.py: LRU eviction and two-tier expiration."""

from __future__ import annotations

import threading

import pytest

from screenlens.cache.memory_store import MemoryCacheStore


def _store(clock, max_entries=10, ttl_ms=1000, max_age_ms=5000):
    return MemoryCacheStore(
        max_entries=max_entries, ttl_ms=ttl_ms, max_age_ms=max_age_ms, name="t", clock=clock
    )


class TestEviction:
    def test_oldest_inserted_evicted_first(self, fake_clock):
        store = _store(fake_clock, max_entries=2)
        store.set("A", 1)
        store.set("B", 2)
        store.set("C", 3)
        assert not store.has("A")
        assert store.has("B")
        assert store.has("C")
        assert len(store) == 2

    def test_read_refreshes_recency(self, fake_clock):
        store = _store(fake_clock, max_entries=2)
        store.set("A", 1)
        store.set("B", 2)
        assert store.get("A") is not None
        store.set("C", 3)
        assert store.has("A")
        assert not store.has("B")

    def test_never_exceeds_capacity(self, fake_clock):
        store = _store(fake_clock, max_entries=3)
        for i in range(20):
            store.set(f"k{i}", i)
            assert len(store) <= 3
        assert store.stats().evictions == 17

    def test_reset_same_key_keeps_single_entry(self, fake_clock):
        store = _store(fake_clock, max_entries=2)
        store.set("A", 1)
        store.set("B", 2)
        store.set("A", 10)
        assert len(store) == 2
        assert store.get("A").payload == 10
        assert store.has("B")

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            MemoryCacheStore(max_entries=0, ttl_ms=1000)


class TestExpiration:
    def test_sliding_ttl_extended_by_reads(self, fake_clock):
        store = _store(fake_clock, ttl_ms=1000, max_age_ms=10_000)
        store.set("A", 1)
        fake_clock.advance(900)
        assert store.get("A") is not None
        fake_clock.advance(900)
        assert store.get("A") is not None

    def test_idle_entry_expires_before_max_age(self, fake_clock):
        store = _store(fake_clock, ttl_ms=1000, max_age_ms=10_000)
        store.set("A", 1)
        fake_clock.advance(1001)
        entry, reason = store.fetch("A")
        assert entry is None
        assert reason == "ENTRY_EXPIRED"
        assert len(store) == 0

    def test_max_age_not_reset_by_access(self, fake_clock):
        store = _store(fake_clock, ttl_ms=1000, max_age_ms=2500)
        store.set("A", 1)
        for _ in range(2):
            fake_clock.advance(900)
            assert store.get("A") is not None
        fake_clock.advance(900)
        entry, reason = store.fetch("A")
        assert entry is None
        assert reason == "ENTRY_EXPIRED"

    def test_exact_ttl_boundary_still_live(self, fake_clock):
        store = _store(fake_clock, ttl_ms=1000)
        store.set("A", 1)
        fake_clock.advance(1000)
        assert store.has("A")

    def test_no_max_age(self, fake_clock):
        store = MemoryCacheStore(max_entries=5, ttl_ms=1000, max_age_ms=None, clock=fake_clock)
        store.set("A", 1)
        for _ in range(50):
            fake_clock.advance(999)
            assert store.get("A") is not None

    def test_absent_key_reason(self, fake_clock):
        store = _store(fake_clock)
        assert store.fetch("missing") == (None, "NO_CACHE_ENTRY")


class TestAccessTracking:
    def test_get_touches_entry(self, fake_clock):
        store = _store(fake_clock)
        created = store.set("A", 1)
        fake_clock.advance(500)
        entry = store.get("A")
        assert entry.access_count == 1
        assert entry.last_accessed_at > created.created_at
        assert entry.created_at == created.created_at

    def test_has_does_not_touch(self, fake_clock):
        store = _store(fake_clock)
        store.set("A", 1)
        assert store.has("A")
        stats = store.stats()
        assert stats.total_hits == 0
        assert stats.total_misses == 0

    def test_entry_ids_unique(self, fake_clock):
        store = _store(fake_clock)
        ids = {store.set(f"k{i}", i).id for i in range(5)}
        assert len(ids) == 5
        assert all(i.startswith("t-") for i in ids)


class TestManagement:
    def test_delete(self, fake_clock):
        store = _store(fake_clock)
        store.set("A", 1)
        assert store.delete("A") is True
        assert store.delete("A") is False

    def test_delete_where(self, fake_clock):
        store = _store(fake_clock)
        store.set("a1", 1)
        store.set("a2", 2)
        store.set("b1", 3)
        removed = store.delete_where(lambda k, v: k.startswith("a"))
        assert removed == 2
        assert len(store) == 1

    def test_entries_skips_expired(self, fake_clock):
        store = _store(fake_clock, ttl_ms=1000)
        store.set("old", 1)
        fake_clock.advance(1500)
        store.set("new", 2)
        assert [e.key for e in store.entries()] == ["new"]

    def test_clear(self, fake_clock):
        store = _store(fake_clock)
        store.set("A", 1)
        store.clear()
        assert len(store) == 0

    def test_stats(self, fake_clock):
        store = _store(fake_clock)
        store.set("A", {"x": 1})
        store.get("A")
        store.get("missing")
        stats = store.stats()
        assert stats.entry_count == 1
        assert stats.total_hits == 1
        assert stats.total_misses == 1
        assert stats.hit_rate == pytest.approx(50.0)
        assert stats.memory_size_estimate > 0
        assert stats.oldest_entry == fake_clock.now

    def test_empty_stats(self, fake_clock):
        stats = _store(fake_clock).stats()
        assert stats.hit_rate == 0.0
        assert stats.oldest_entry is None


class TestThreadSafety:
    def test_concurrent_writers_respect_capacity(self, fake_clock):
        store = _store(fake_clock, max_entries=5)
        barrier = threading.Barrier(8)
        sizes: list[int] = []

        def work(worker: int) -> None:
            barrier.wait()
            for i in range(200):
                key = f"k{(worker * 7 + i) % 20}"
                store.set(key, {"worker": worker, "i": i})
                store.get(f"k{i % 20}")
                sizes.append(len(store))

        threads = [threading.Thread(target=work, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        keys = [e.key for e in store.entries()]
        assert max(sizes) <= 5
        assert len(store) == 5
        assert len(keys) == len(set(keys))

        stats = store.stats()
        assert stats.total_hits + stats.total_misses == 8 * 200
        assert stats.evictions > 0

    def test_concurrent_same_key_single_entry(self, fake_clock):
        store = _store(fake_clock, max_entries=3)
        barrier = threading.Barrier(6)

        def work(worker: int) -> None:
            barrier.wait()
            for i in range(100):
                store.set("shared", worker * 1000 + i)

        threads = [threading.Thread(target=work, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 1
        assert store.get("shared").payload % 1000 == 99
