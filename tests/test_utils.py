"""
Tests for realmguard/utils/

Covers duration formatting and the background task helpers.
"""

import asyncio
import inspect

import pytest

from realmguard.utils.async_utils import cancel_task, create_safe_task, safe_async_operation
from realmguard.utils.time_format import format_duration


# =============================================================================
# format_duration() Tests
# =============================================================================

class TestFormatDuration:
    """Tests for format_duration function."""

    def test_seconds(self):
        assert format_duration(45) == "45s"
        assert format_duration(0.4) == "0s"

    def test_minutes(self):
        assert format_duration(125) == "2m 5s"
        assert format_duration(120) == "2m"

    def test_hours(self):
        assert format_duration(3700) == "1h 1m"
        assert format_duration(7200) == "2h"

    def test_days(self):
        assert format_duration(90000) == "1d 1h"
        assert format_duration(86400) == "1d"

    def test_zero_and_negative(self):
        assert format_duration(0) == "0s"
        assert format_duration(-5) == "0s"


# =============================================================================
# Async Helpers
# =============================================================================

class TestSafeAsyncOperation:
    """Tests for safe_async_operation."""

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def ok():
            return 42
        assert await safe_async_operation("ok", ok()) == 42

    @pytest.mark.asyncio
    async def test_failure_returns_default(self):
        async def boom():
            raise RuntimeError("boom")
        assert await safe_async_operation("boom", boom(), default="fallback", log_level="error") == "fallback"

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        async def cancelled():
            raise asyncio.CancelledError()
        with pytest.raises(asyncio.CancelledError):
            await safe_async_operation("cancelled", cancelled())


class TestBackgroundTasks:
    """Tests for create_safe_task and cancel_task."""

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self):
        async def boom():
            raise RuntimeError("boom")
        task = create_safe_task(boom(), "Boom")
        await task
        assert task.done()
        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_cancel_waits_for_task(self):
        async def forever():
            while True:
                await asyncio.sleep(1)
        task = create_safe_task(forever(), "Forever")
        await asyncio.sleep(0)
        await cancel_task(task)
        assert task.done()

    @pytest.mark.asyncio
    async def test_cancel_before_start_closes_coroutine(self):
        coro = asyncio.sleep(10)
        task = create_safe_task(coro, "Never Started")
        await cancel_task(task)
        await asyncio.sleep(0)
        assert task.cancelled()
        assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED

    @pytest.mark.asyncio
    async def test_cancel_none_or_done(self):
        await cancel_task(None)
        task = create_safe_task(asyncio.sleep(0), "Quick")
        await task
        await cancel_task(task)
