# src/llm/rate_limiter.py — v1
"""Process-wide throttle state fed by service "retry later" signals."""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable

from screenlens.core.models import RateLimitStatus

logger = logging.getLogger(__name__)


class RateLimiter:
    """Tracks whether the vision service asked us to back off.

    One instance is shared by every pipeline of a runtime. The reported wait
    is never negative and the state clears itself once the reset time passes.

    Args:
        default_wait_ms: Wait applied when a throttle signal has no retry-after.
        clock: Monotonic clock in seconds (injectable for tests).
    """

    def __init__(
        self,
        default_wait_ms: int = 30_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_wait_ms = default_wait_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._is_limited = False
        self._reset_at: float | None = None
        self._consecutive_hits = 0

    def record_throttle_signal(self, retry_after_ms: int | None = None) -> None:
        wait_ms = self._default_wait_ms if retry_after_ms is None else retry_after_ms
        with self._lock:
            self._is_limited = True
            self._reset_at = self._clock() + wait_ms / 1000
            self._consecutive_hits += 1
            hits = self._consecutive_hits
        logger.warning("Rate limited: waiting %dms (consecutive hits: %d)", wait_ms, hits)

    def clear(self) -> None:
        with self._lock:
            self._reset_locked()

    def wait_time_ms(self) -> int:
        with self._lock:
            return self._wait_time_locked()

    @property
    def is_limited(self) -> bool:
        with self._lock:
            self._wait_time_locked()
            return self._is_limited

    @property
    def consecutive_hits(self) -> int:
        with self._lock:
            self._wait_time_locked()
            return self._consecutive_hits

    def status(self) -> RateLimitStatus:
        with self._lock:
            wait = self._wait_time_locked()
            return RateLimitStatus(
                is_limited=self._is_limited,
                wait_time_ms=wait,
                consecutive_hits=self._consecutive_hits,
            )

    def _wait_time_locked(self) -> int:
        if not self._is_limited or self._reset_at is None:
            return 0
        remaining = self._reset_at - self._clock()
        if remaining <= 0:
            self._reset_locked()
            return 0
        # Never report 0 while still limited
        return max(1, math.ceil(round(remaining * 1000, 6)))

    def _reset_locked(self) -> None:
        self._is_limited = False
        self._reset_at = None
        self._consecutive_hits = 0
