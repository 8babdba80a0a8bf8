"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.

Example:
    from tests.helpers import ManualScheduler

    scheduler = ManualScheduler()
    scheduler.call_later(0.2, callback)
    scheduler.advance(0.2)
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

SPELL_FIREBALL = {
    "name": "Fireball",
    "source": "PHB",
    "page": 241,
    "level": 3,
    "school": "V",
    "time": [{"number": 1, "unit": "action"}],
    "range": {"type": "point", "distance": {"type": "feet", "amount": 150}},
    "components": {"v": True, "s": True, "m": "a tiny ball of bat guano and sulfur"},
    "duration": [{"type": "instant"}],
    "entries": ["A bright streak flashes to a point you choose. See {@spell Fireball} and {@condition Prone}."],
}

SPELL_LIGHT = {
    "name": "Light",
    "source": "PHB",
    "level": 0,
    "school": "V",
    "time": [{"number": 1, "unit": "action"}],
    "range": {"type": "point", "distance": {"type": "touch"}},
    "components": {"v": True, "m": "a firefly"},
    "duration": [{"type": "timed", "duration": {"type": "hour", "amount": 1}}],
    "entries": ["You touch one object."],
}

CONDITION_PRONE = {
    "name": "Prone",
    "source": "PHB",
    "entries": [
        {
            "type": "list",
            "items": ["A prone creature's only movement option is to crawl.", "Attack rolls against it have advantage."],
        }
    ],
}

SKILL_ATHLETICS = {
    "name": "Athletics",
    "source": "PHB",
    "ability": "str",
    "entries": ["Covers difficult situations you encounter while climbing, jumping, or swimming."],
}

MONSTER_GOBLIN = {
    "name": "Goblin",
    "source": "MM",
    "size": ["S"],
    "type": "humanoid",
    "alignment": ["N", "E"],
    "ac": [15],
    "hp": {"average": 7, "formula": "2d6"},
    "speed": {"walk": 30},
    "cr": "1/4",
    "str": 8,
    "dex": 14,
    "con": 10,
    "int": 10,
    "wis": 8,
    "cha": 8,
}

SAMPLE_RECORDS: dict[str, list[dict[str, Any]]] = {
    "spells": [SPELL_FIREBALL, SPELL_LIGHT, {**SPELL_FIREBALL, "source": "XPHB", "page": 282}],
    "conditions": [CONDITION_PRONE],
    "skills": [SKILL_ATHLETICS],
    "monsters": [MONSTER_GOBLIN],
}


@dataclass(eq=False)
class ManualTimer:
    when: float
    order: int
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Scheduler with a virtual clock; timers only fire from :meth:`advance`.

    ``spawn`` schedules coroutines on the running asyncio loop, so tests that
    open tooltips must be async.
    """

    now: float = 0.0
    timers: list[ManualTimer] = field(default_factory=list)
    spawned: list[asyncio.Future[Any]] = field(default_factory=list)
    _order: Any = field(default_factory=itertools.count)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(when=self.now + max(delay, 0.0), order=next(self._order), callback=callback)
        self.timers.append(timer)
        return timer

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Future[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self.spawned.append(task)
        return task

    def pending(self) -> int:
        return sum(1 for timer in self.timers if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in time order."""

        target = self.now + seconds
        while True:
            due = [timer for timer in self.timers if not timer.cancelled and timer.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda item: (item.when, item.order))
            self.timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback()
        self.now = target
        self.timers = [timer for timer in self.timers if not timer.cancelled]


class GatedLookup:
    """Lookup service whose answers wait until the test releases them."""

    def __init__(self, records: dict[str, dict[str, Any]]) -> None:
        self._records = records
        self.calls: list[tuple[str, str | None]] = []
        self.gate = asyncio.Event()

    async def get_spell(self, name: str, source: str | None = None) -> dict[str, Any] | None:
        self.calls.append((name, source))
        await self.gate.wait()
        return self._records.get(name)


class RaisingLookup:
    def get_spell(self, name: str, source: str | None = None) -> dict[str, Any]:
        raise LookupError(f"database offline for {name}")


class SyncLookup:
    """Plain synchronous accessors; the resolver accepts non-awaitable results."""

    def __init__(self, records: dict[str, dict[str, Any]]) -> None:
        self._records = records
        self.calls: list[tuple[str, str | None]] = []

    def get_condition(self, name: str, source: str | None = None) -> dict[str, Any] | None:
        self.calls.append((name, source))
        return self._records.get(name)
