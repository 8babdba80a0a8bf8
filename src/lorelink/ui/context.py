"""Reference context: the one place the tooltip runtime gets wired together.

Usage:
    from lorelink.data import load_services
    from lorelink.ui.context import build_reference_context

    context = build_reference_context(settings, load_services(settings.data_dir))
    await context.processor.process_region()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..markup import TagRenderer, build_tag_renderer
from ..references.resolver import ReferenceResolver
from ..rendering.registry import EntityRendererRegistry
from ..services.settings import Settings
from .dom import ContentDocument, upgrade_legacy_links
from .domain.positioning import Viewport
from .domain.text_processor import TextBatchProcessor
from .domain.tooltip_stack import HeadlessTooltipHost, TooltipHost, TooltipStackManager
from .events import EventBus
from .scheduling import AsyncioScheduler, Scheduler

__all__ = ["ReferenceContext", "build_reference_context"]

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReferenceContext:
    """Everything one content view needs; built once, then passed around."""

    settings: Settings
    event_bus: EventBus
    scheduler: Scheduler
    document: ContentDocument
    tags: TagRenderer
    resolver: ReferenceResolver
    registry: EntityRendererRegistry
    stack: TooltipStackManager
    processor: TextBatchProcessor

    def shutdown(self) -> None:
        self.processor.stop()
        self.stack.dispose()


def build_reference_context(
    settings: Settings,
    services: Any,
    *,
    document: ContentDocument | None = None,
    scheduler: Scheduler | None = None,
    host: TooltipHost | None = None,
    event_bus: EventBus | None = None,
) -> ReferenceContext:
    """Create and wire the renderer, resolver, registry and runtime managers.

    Args:
        settings: Active settings; supplies the default source and timings.
        services: Object exposing lookup services as attributes
            (see :class:`~lorelink.data.catalog.LookupServices`).
        document: Content tree to operate on. An empty one is created if omitted.
        scheduler: Timer/task scheduler. Defaults to the running asyncio loop.
        host: Tooltip host. Defaults to a headless host sized from settings.
        event_bus: Shared bus; a new one is created if omitted.
    """

    _LOGGER.debug("Building reference context (default source %s)", settings.default_source)
    event_bus = event_bus if event_bus is not None else EventBus()
    scheduler = scheduler if scheduler is not None else AsyncioScheduler()
    document = document if document is not None else ContentDocument()
    host = host if host is not None else HeadlessTooltipHost(Viewport(settings.viewport_width, settings.viewport_height))

    tags = build_tag_renderer(default_source=settings.default_source)
    resolver = ReferenceResolver.from_services(services, default_source=settings.default_source)
    registry = EntityRendererRegistry(tags)

    upgrade_legacy_links(document.body)

    stack = TooltipStackManager(
        document=document,
        resolver=resolver,
        registry=registry,
        scheduler=scheduler,
        host=host,
        event_bus=event_bus,
        settings=settings,
    )
    processor = TextBatchProcessor(document, tags, scheduler, event_bus=event_bus, settings=settings)
    return ReferenceContext(
        settings=settings,
        event_bus=event_bus,
        scheduler=scheduler,
        document=document,
        tags=tags,
        resolver=resolver,
        registry=registry,
        stack=stack,
        processor=processor,
    )
