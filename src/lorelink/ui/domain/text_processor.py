"""Batch processor that renders tag markup inside a content tree.

Elements are marked with ``data-processed`` once visited so repeat scans only
touch new content. Insertions reported by the document observer are queued
and flushed together on the next frame tick.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from bs4 import Tag

from ...markup.formatting import apply_inline_formatting
from ...markup.renderer import RenderMode, TagRenderer, has_markup
from ...services.settings import Settings
from ..dom import ContentDocument, Observation, inner_html, is_within, iter_ancestors, matches
from ..events import ContentProcessed, EventBus
from ..scheduling import Scheduler, TimerSlot

__all__ = [
    "DISPLAY_NAME_SELECTORS",
    "PROCESSED_ATTR",
    "ProcessOptions",
    "TOOLTIP_SELECTORS",
    "TextBatchProcessor",
]

LOGGER = logging.getLogger(__name__)

PROCESSED_ATTR = "data-processed"
DISPLAY_NAME_SELECTORS = (".text-content",)
TOOLTIP_SELECTORS = (
    ".description",
    ".tooltip-content",
    ".proficiency-info",
    ".ability-info",
    "p",
    "li",
    "td",
    ".card-text",
    ".proficiency-note",
)


@dataclass(frozen=True, slots=True)
class ProcessOptions:
    force: bool = False
    formatting: bool = True


class TextBatchProcessor:
    """Runs the tag renderer over every processable element of a region."""

    def __init__(
        self,
        document: ContentDocument,
        tags: TagRenderer,
        scheduler: Scheduler,
        *,
        event_bus: EventBus | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._document = document
        self._tags = tags
        self._scheduler = scheduler
        self._event_bus = event_bus
        self._settings = settings or Settings()
        self._flush_timer = TimerSlot("flush-tick", scheduler)
        self._queue: list[Tag] = []
        self._observation: Observation | None = None
        self._tasks: set[asyncio.Future[Any]] = set()

    @property
    def observing(self) -> bool:
        return self._observation is not None

    @property
    def queued(self) -> int:
        return len(self._queue)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------
    async def process_region(self, root: Tag | None = None, options: ProcessOptions | None = None) -> int:
        """Process every matching element under *root* (inclusive).

        Returns:
            The number of elements whose markup changed.
        """

        root = root if root is not None else self._document.body
        options = options or ProcessOptions(formatting=self._settings.process_formatting)
        changed = 0
        for element, mode in self._collect(root, options.force):
            if self._process(element, mode, options):
                changed += 1
            await asyncio.sleep(0)
        if changed:
            LOGGER.debug("Processed region: %d element(s) changed", changed)
        return changed

    async def process_element(self, element: Tag) -> bool:
        """Force reprocessing of a single element."""

        mode: RenderMode = "display_name" if _matches_any(element, DISPLAY_NAME_SELECTORS) else "tooltip"
        options = ProcessOptions(force=True, formatting=self._settings.process_formatting)
        return self._process(element, mode, options)

    def _collect(self, root: Tag, force: bool) -> list[tuple[Tag, RenderMode]]:
        found: list[tuple[Tag, RenderMode]] = []
        seen: set[int] = set()
        for selectors, mode in ((DISPLAY_NAME_SELECTORS, "display_name"), (TOOLTIP_SELECTORS, "tooltip")):
            candidates = [root] if _matches_any(root, selectors) else []
            candidates.extend(root.select(", ".join(selectors)))
            for element in candidates:
                if id(element) in seen:
                    continue
                seen.add(id(element))
                if not force and element.get(PROCESSED_ATTR) == "true":
                    continue
                found.append((element, mode))  # type: ignore[arg-type]
        # Innermost first: an ancestor visited later sees already-rendered markup.
        found.sort(key=lambda item: -sum(1 for _ in iter_ancestors(item[0])))
        return found

    def _process(self, element: Tag, mode: RenderMode, options: ProcessOptions) -> bool:
        original = inner_html(element)
        if has_markup(original):
            updated = self._tags.process_string(original, mode=mode)
        elif options.formatting:
            updated = apply_inline_formatting(original)
        else:
            updated = original
        changed = updated != original
        if changed:
            self._document.set_inner_html(element, updated, notify=False)
        element[PROCESSED_ATTR] = "true"
        return changed

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------
    def start(self, root: Tag | None = None) -> None:
        """Watch *root* for inserted elements and process them in batches."""

        self.stop()
        root = root if root is not None else self._document.body
        self._observation = self._document.observe(root, self._on_inserted)
        LOGGER.debug("Text processor observing <%s>", root.name)

    def stop(self) -> None:
        if self._observation is not None:
            self._observation.disconnect()
            self._observation = None
        self._flush_timer.cancel()
        self._queue.clear()

    async def settle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_inserted(self, elements: list[Tag]) -> None:
        for element in elements:
            if not any(queued is element for queued in self._queue):
                self._queue.append(element)
        if not self._flush_timer.pending:
            self._flush_timer.start(self._settings.frame_interval, self._flush)

    def _flush(self) -> None:
        batch = self._queue
        self._queue = []
        # Nested roots are covered by their queued ancestor.
        roots = [
            element
            for element in batch
            if not any(other is not element and is_within(element, other) for other in batch)
        ]
        if not roots:
            return
        task = self._scheduler.spawn(self._process_batch(roots))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _process_batch(self, roots: list[Tag]) -> None:
        changed = 0
        for root in roots:
            changed += await self.process_region(root)
        if self._event_bus is not None:
            self._event_bus.publish(ContentProcessed(count=changed))


def _matches_any(element: Tag, selectors: tuple[str, ...]) -> bool:
    return any(matches(element, selector) for selector in selectors)
