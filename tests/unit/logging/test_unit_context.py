# tests/unit/logging/test_unit_context.py — v1
"""Tests for logging/context.py: per-request logging variables."""

from __future__ import annotations

import asyncio

import pytest

from screenlens.logging.context import (
    clear_context,
    get_context,
    set_operation_context,
    set_request_context,
    set_subject_context,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.subject_id is None
        assert ctx.request_id is None
        assert ctx.operation is None
        assert ctx.attempt is None

    def test_request_context(self):
        set_request_context("req-1", "app-42")
        ctx = get_context()
        assert ctx.request_id == "req-1"
        assert ctx.subject_id == "app-42"

    def test_subject_keeps_request(self):
        set_request_context("req-1")
        set_subject_context("app-7")
        ctx = get_context()
        assert ctx.request_id == "req-1"
        assert ctx.subject_id == "app-7"

    def test_operation_context(self):
        set_operation_context("vision", attempt=2)
        ctx = get_context()
        assert ctx.operation == "vision"
        assert ctx.attempt == 2

    def test_as_dict_filters_none(self):
        set_request_context("req-1")
        d = get_context().as_dict()
        assert d == {"request_id": "req-1"}

    def test_clear(self):
        set_request_context("req-1", "app-42")
        set_operation_context("search")
        clear_context()
        assert get_context().as_dict() == {}

    @pytest.mark.asyncio
    async def test_tasks_are_isolated(self):
        async def worker(request_id: str) -> str | None:
            set_request_context(request_id)
            await asyncio.sleep(0)
            return get_context().request_id

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]
        assert get_context().request_id is None
