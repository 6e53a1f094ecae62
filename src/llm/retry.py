# src/llm/retry.py — v1
"""Retry executor with exponential backoff, jitter and deadlines.

Every call to the vision service and to the search providers goes through
RetryExecutor. Failures are first normalized by classify_error; only
RATE_LIMITED, TIMEOUT and NETWORK_ERROR are retried.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from screenlens.llm.errors import VisionServiceError, create_service_error

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnRetry = Callable[[int, VisionServiceError, int], Any]

DEFAULT_RETRY_AFTER_MS = 30_000

_TIMEOUT_RE = re.compile(r"timeout|timed out", re.IGNORECASE)
_NETWORK_RE = re.compile(r"network|fetch|connection|econnrefused|enotfound", re.IGNORECASE)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters. Immutable; validated on construction."""

    max_retries: int = 3
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30_000
    backoff_multiplier: float = 2.0
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("delays must be >= 0")
        if self.initial_delay_ms > self.max_delay_ms:
            raise ValueError("initial_delay_ms must be <= max_delay_ms")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be >= 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


DEFAULT_RETRY_POLICY = RetryPolicy()


def compute_backoff_delay(
    attempt: int,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    rand: Callable[[], float] = random.random,
) -> int:
    """Delay in ms before the retry following ``attempt`` (0-based).

    ``min(initial * multiplier**attempt, max) + that * jitter * rand()``
    """
    base = min(policy.initial_delay_ms * policy.backoff_multiplier ** attempt, policy.max_delay_ms)
    jitter = base * policy.jitter_factor * rand()
    return int(base + jitter)


def _retry_after_ms(headers: Any) -> int:
    value = None
    if headers is not None:
        try:
            value = headers.get("retry-after")
        except AttributeError:
            value = None
    if value is None:
        return DEFAULT_RETRY_AFTER_MS
    try:
        return int(float(value) * 1000)
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_MS


def classify_error(error: BaseException) -> VisionServiceError:
    """Normalize any exception into a VisionServiceError.

    SDK errors (anthropic, google, httpx) are recognized by their
    ``status_code`` attribute or ``response``; everything else by type and
    message.
    """
    if isinstance(error, VisionServiceError):
        return error

    message = str(error) or type(error).__name__

    status = getattr(error, "status_code", None)
    response = getattr(error, "response", None)
    if status is None and response is not None:
        status = getattr(response, "status_code", None)

    if isinstance(status, int):
        if status == 429:
            return create_service_error(
                "RATE_LIMITED",
                message,
                retry_after_ms=_retry_after_ms(getattr(response, "headers", None)),
                status_code=status,
            )
        if status in (401, 403):
            return create_service_error("API_KEY_INVALID", message, status_code=status)
        if status >= 500:
            return create_service_error("NETWORK_ERROR", message, status_code=status)

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return create_service_error("TIMEOUT", message or "Request timed out")

    if isinstance(error, json.JSONDecodeError):
        return create_service_error("RESPONSE_PARSE_ERROR", message)

    if isinstance(error, ConnectionError):
        return create_service_error("NETWORK_ERROR", message)

    name = type(error).__name__
    if _TIMEOUT_RE.search(message) or "Timeout" in name:
        return create_service_error("TIMEOUT", message)
    if _NETWORK_RE.search(message) or "Connect" in name or "Transport" in name:
        return create_service_error("NETWORK_ERROR", message)

    return create_service_error("UNKNOWN_ERROR", message)


class RetryExecutor:
    """Runs async operations under a retry policy.

    Args:
        policy: Default policy when ``execute`` is not given one.
        sleep: Awaitable sleep taking seconds (injectable for tests).
        rand: Jitter source in [0, 1).
    """

    def __init__(
        self,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self._policy = policy
        self._sleep = sleep
        self._rand = rand

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy | None = None,
        on_retry: OnRetry | None = None,
        deadline_ms: int | None = None,
    ) -> T:
        """Run ``operation`` until it succeeds or retries are exhausted.

        ``on_retry(attempt, error, delay_ms)`` is called before each backoff
        sleep; ``attempt`` is the 1-based number of the failed attempt. When
        ``deadline_ms`` is given it bounds the whole run, sleeps included.

        Raises:
            VisionServiceError: The last classified error.
        """
        if deadline_ms is not None:
            return await self.with_deadline(
                lambda: self._run(operation, policy or self._policy, on_retry),
                deadline_ms,
            )
        return await self._run(operation, policy or self._policy, on_retry)

    async def with_deadline(
        self,
        operation: Callable[[], Awaitable[T]],
        timeout_ms: int,
    ) -> T:
        """Run ``operation`` with a hard deadline.

        Raises:
            VisionServiceError: TIMEOUT when the deadline elapses first. The
                in-flight call is cancelled.
        """
        try:
            return await asyncio.wait_for(operation(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            raise create_service_error(
                "TIMEOUT", f"Request timed out after {timeout_ms}ms"
            ) from e

    async def _run(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        on_retry: OnRetry | None,
    ) -> T:
        last_error: VisionServiceError | None = None

        for attempt in range(policy.max_attempts):
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = classify_error(e)

            if not last_error.retryable or attempt >= policy.max_retries:
                break

            if last_error.retry_after_ms is not None:
                delay_ms = last_error.retry_after_ms
            else:
                delay_ms = compute_backoff_delay(attempt, policy, self._rand)

            logger.warning(
                "%s (attempt %d/%d), retrying in %dms",
                last_error.code, attempt + 1, policy.max_attempts, delay_ms,
            )
            if on_retry is not None:
                on_retry(attempt + 1, last_error, delay_ms)
            await self._sleep(delay_ms / 1000)

        assert last_error is not None
        raise last_error
