# src/logging/context.py — v1
"""Contextual logging support: attach subject_id, request_id, operation to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per analysis/search request; each asyncio task sees its own copy.
_subject_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "subject_id", default=None
)
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_attempt: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "attempt", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    subject_id: str | None = None
    request_id: str | None = None
    operation: str | None = None
    attempt: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        subject_id=_subject_id.get(),
        request_id=_request_id.get(),
        operation=_operation.get(),
        attempt=_attempt.get(),
    )


def set_request_context(request_id: str | None, subject_id: str | None = None) -> None:
    """Set request-level context (called once per analysis or search)."""
    _request_id.set(request_id)
    _subject_id.set(subject_id)


def set_subject_context(subject_id: str | None) -> None:
    """Set the subject without touching the request id."""
    _subject_id.set(subject_id)


def set_operation_context(operation: str, attempt: int | None = None) -> None:
    """Set operation-level context (vision call, search call, cache store)."""
    _operation.set(operation)
    _attempt.set(attempt)


def clear_context() -> None:
    """Reset all context variables."""
    _subject_id.set(None)
    _request_id.set(None)
    _operation.set(None)
    _attempt.set(None)
