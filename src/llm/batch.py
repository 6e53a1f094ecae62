# src/llm/batch.py — v1
"""Caps how many screenshots a single vision call may carry."""

from __future__ import annotations

from typing import Sequence, TypeVar

from screenlens.core.models import BatchDecision

T = TypeVar("T")


def decide_batch(items: Sequence[T], max_allowed: int) -> tuple[list[T], BatchDecision]:
    """Keep the first ``max_allowed`` items and describe what was dropped.

    Raises:
        ValueError: If max_allowed < 1.
    """
    if max_allowed < 1:
        raise ValueError(f"max_allowed must be >= 1, got {max_allowed}")

    accepted = list(items[:max_allowed])
    decision = BatchDecision(
        total_provided=len(items),
        accepted=len(accepted),
        was_truncated=len(items) > max_allowed,
        max_allowed=max_allowed,
    )
    return accepted, decision


class BatchLimiter:
    """decide_batch bound to a provider limit."""

    def __init__(self, max_allowed: int) -> None:
        if max_allowed < 1:
            raise ValueError(f"max_allowed must be >= 1, got {max_allowed}")
        self._max_allowed = max_allowed

    @property
    def max_allowed(self) -> int:
        return self._max_allowed

    def decide(self, items: Sequence[T], max_allowed: int | None = None) -> tuple[list[T], BatchDecision]:
        return decide_batch(items, max_allowed or self._max_allowed)
