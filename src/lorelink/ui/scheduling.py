"""Cancellable timers and task spawning on the cooperative event loop."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Coroutine, Protocol

__all__ = ["AsyncioScheduler", "Scheduler", "TimerHandle", "TimerSlot"]

LOGGER = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Minimal timer/task interface the tooltip runtime depends on."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Future[Any]: ...


class AsyncioScheduler:
    """Scheduler backed by the running asyncio loop (qasync's loop under Qt)."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _resolve_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._resolve_loop().call_later(max(delay, 0.0), callback)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Future[Any]:
        return self._resolve_loop().create_task(coro)


class TimerSlot:
    """A named single-shot timer that at most one callback occupies.

    Every ``start``/``cancel`` bumps a generation token, and a firing callback
    whose token is stale is dropped, so a callback scheduled before the
    relevant UI state moved on can never run.
    """

    __slots__ = ("name", "_scheduler", "_generation", "_handle")

    def __init__(self, name: str, scheduler: Scheduler) -> None:
        self.name = name
        self._scheduler = scheduler
        self._generation = 0
        self._handle: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def start(self, delay: float, callback: Callable[[], None]) -> None:
        self.cancel()
        generation = self._generation

        def fire() -> None:
            if generation != self._generation:
                LOGGER.debug("Dropping stale %s callback", self.name)
                return
            self._handle = None
            callback()

        self._handle = self._scheduler.call_later(delay, fire)

    def cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
