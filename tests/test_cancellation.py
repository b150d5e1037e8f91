"""Tests for CancellationHandle."""

from __future__ import annotations

import asyncio

import pytest

from repopanel.ai.cancellation import CancellationHandle, GenerationCancelled


class TestCancellationHandle:
    def test_callbacks_run_once(self) -> None:
        handle = CancellationHandle()
        calls: list[str] = []
        handle.on_cancel(lambda: calls.append("a"))

        handle.cancel()
        handle.cancel()

        assert calls == ["a"]
        assert handle.cancelled

    def test_late_callback_runs_immediately(self) -> None:
        handle = CancellationHandle()
        handle.cancel()
        calls: list[str] = []

        handle.on_cancel(lambda: calls.append("late"))

        assert calls == ["late"]

    def test_double_dispose_is_a_no_op(self) -> None:
        handle = CancellationHandle()
        calls: list[int] = []
        handle.on_cancel(lambda: calls.append(1))

        handle.dispose()
        handle.dispose()

        assert handle.disposed and handle.cancelled
        assert calls == [1]

    def test_failing_callback_does_not_block_others(self) -> None:
        handle = CancellationHandle()
        calls: list[str] = []

        def broken() -> None:
            raise RuntimeError("boom")

        handle.on_cancel(broken)
        handle.on_cancel(lambda: calls.append("ok"))
        handle.cancel()

        assert calls == ["ok"]

    def test_raise_if_cancelled(self) -> None:
        handle = CancellationHandle()
        handle.raise_if_cancelled()
        handle.cancel()

        with pytest.raises(GenerationCancelled):
            handle.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self) -> None:
        handle = CancellationHandle()
        waiter = asyncio.ensure_future(handle.wait())
        await asyncio.sleep(0)
        assert not waiter.done()

        handle.cancel()

        await asyncio.wait_for(waiter, timeout=1)
