"""Tests for timers and the asyncio-backed scheduler."""

from __future__ import annotations

import asyncio

import pytest

from lorelink.ui.scheduling import AsyncioScheduler, TimerSlot
from tests.helpers import ManualScheduler


class TestTimerSlot:
    def test_fires_once_after_delay(self, scheduler: ManualScheduler) -> None:
        slot = TimerSlot("show", scheduler)
        fired: list[str] = []

        slot.start(0.2, lambda: fired.append("show"))
        scheduler.advance(0.1)
        assert fired == []
        assert slot.pending

        scheduler.advance(0.1)
        assert fired == ["show"]
        assert not slot.pending

    def test_restart_replaces_callback(self, scheduler: ManualScheduler) -> None:
        slot = TimerSlot("show", scheduler)
        fired: list[str] = []

        slot.start(0.2, lambda: fired.append("first"))
        slot.start(0.2, lambda: fired.append("second"))
        scheduler.advance(1)

        assert fired == ["second"]

    def test_cancel(self, scheduler: ManualScheduler) -> None:
        slot = TimerSlot("hide", scheduler)
        fired: list[str] = []

        slot.start(0.3, lambda: fired.append("hide"))
        slot.cancel()
        scheduler.advance(1)

        assert fired == []
        assert not slot.pending

    def test_stale_callback_is_dropped_even_if_handle_fires(self) -> None:
        class StickyScheduler(ManualScheduler):
            def call_later(self, delay, callback):  # type: ignore[no-untyped-def]
                timer = super().call_later(delay, callback)
                timer.cancel = lambda: None  # type: ignore[method-assign]
                return timer

        scheduler = StickyScheduler()
        slot = TimerSlot("retreat", scheduler)
        fired: list[str] = []

        slot.start(0.1, lambda: fired.append("retreat"))
        slot.cancel()
        scheduler.advance(1)

        assert fired == []


class TestAsyncioScheduler:
    @pytest.mark.asyncio
    async def test_call_later_uses_running_loop(self) -> None:
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        scheduler.call_later(-1, fired.set)

        await asyncio.wait_for(fired.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_spawn_returns_task(self) -> None:
        scheduler = AsyncioScheduler(asyncio.get_running_loop())

        async def work() -> int:
            return 7

        assert await scheduler.spawn(work()) == 7
