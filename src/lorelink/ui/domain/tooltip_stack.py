"""Tooltip stack manager: hover-driven popups for nested entity references.

The stack mirrors the hover chain. Index 0 holds a tooltip opened from page
content and index N one opened from inside the tooltip at N-1. Hovering an
anchor at depth D trims everything above D (stopping at the first pinned
instance), resolves the reference, and pushes the new tooltip.

Resolution is asynchronous and cannot be aborted. When it completes, the
result is only shown if the anchor that triggered it is still the active
hover target; otherwise it is dropped.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import textwrap
from dataclasses import dataclass, field
from typing import Any, Protocol

from bs4 import BeautifulSoup, PageElement, Tag

from ...markup.tokens import DEFAULT_SOURCE, HOVER_LINK_CLASS, LEGACY_LINK_CLASS, escape_html
from ...references.keys import ReferenceKey
from ...references.resolver import ReferenceResolver
from ...rendering.registry import LOAD_FAILURE_MESSAGE, EntityRendererRegistry, error_body
from ...services.settings import Settings
from ..dom import ContentDocument, add_class, as_tag, closest, has_class, remove_class
from ..events import (
    EventBus,
    TooltipClosed,
    TooltipContentCopied,
    TooltipMoved,
    TooltipOpened,
    TooltipPinChanged,
)
from ..scheduling import Scheduler, TimerSlot
from .positioning import Viewport, clamp_to_viewport, compute_position

__all__ = [
    "HeadlessTooltipHost",
    "HoverMeta",
    "TooltipHost",
    "TooltipInstance",
    "TooltipStackManager",
]

LOGGER = logging.getLogger(__name__)

HOVER_SELECTOR = f".{HOVER_LINK_CLASS}, .{LEGACY_LINK_CLASS}"
CONTAINER_SELECTOR = ".tooltip-container"
SYSTEM_SELECTOR = ".tooltip-container, .tooltip"
INTERACTIVE_SELECTOR = "button, a"
PIN_TITLE = "Pin tooltip (Ctrl+P)"
UNPIN_TITLE = "Unpin tooltip"
CLOSE_TITLE = "Close (Esc)"
BASE_Z_INDEX = 10000
_INLINE_LABELS = {"trait": "Racial Trait", "feature": "Feature"}


class TooltipHost(Protocol):
    """What the stack manager needs from whoever draws the popups."""

    def measure(self, content_html: str) -> tuple[int, int]: ...

    def viewport(self) -> Viewport: ...

    def copy_text(self, text: str) -> None: ...


class HeadlessTooltipHost:
    """Host without a display: estimates popup size from wrapped text length."""

    padding = 8
    line_height = 16
    char_width = 7
    wrap_width = 42

    def __init__(self, viewport: Viewport | None = None) -> None:
        self._viewport = viewport or Viewport(1280, 800)
        self.copied: list[str] = []

    def measure(self, content_html: str) -> tuple[int, int]:
        text = BeautifulSoup(content_html or "", "html.parser").get_text("\n")
        lines: list[str] = []
        for raw in text.splitlines():
            stripped = raw.strip()
            if stripped:
                lines.extend(textwrap.wrap(stripped, width=self.wrap_width))
        if not lines:
            lines = [""]
        max_chars = max(len(line) for line in lines)
        width = self.padding * 2 + max_chars * self.char_width
        height = self.padding * 2 + self.line_height * len(lines)
        return width, height

    def viewport(self) -> Viewport:
        return self._viewport

    def copy_text(self, text: str) -> None:
        self.copied.append(text)


@dataclass(frozen=True, slots=True)
class HoverMeta:
    """Reference metadata read off a hover anchor."""

    type: str
    name: str
    source: str
    inline_content: str | None = None


@dataclass(slots=True, eq=False)
class TooltipInstance:
    """One open popup. The manager is the only writer of these fields."""

    id: str
    anchor: Tag | None
    parent_id: str | None
    reference_key: ReferenceKey | None
    container: Tag
    tooltip: Tag
    content: Tag
    is_pinned: bool = False
    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0


@dataclass(slots=True)
class _DragState:
    instance: TooltipInstance
    offset_x: float
    offset_y: float


@dataclass(slots=True)
class _ShowRequest:
    anchor: Tag
    meta: HoverMeta
    depth: int
    key: ReferenceKey | None = field(default=None)


class TooltipStackManager:
    """Owns the live tooltip stack and every transition applied to it."""

    def __init__(
        self,
        *,
        document: ContentDocument,
        resolver: ReferenceResolver,
        registry: EntityRendererRegistry,
        scheduler: Scheduler,
        host: TooltipHost | None = None,
        event_bus: EventBus | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._document = document
        self._resolver = resolver
        self._registry = registry
        self._scheduler = scheduler
        self._host: TooltipHost = host or HeadlessTooltipHost()
        self._event_bus = event_bus
        self._settings = settings or Settings()

        self._stack: list[TooltipInstance] = []
        self._ids = itertools.count(1)
        self._pointer: tuple[float, float] = (0.0, 0.0)
        self._pending: _ShowRequest | None = None
        self._current_anchor: Tag | None = None
        self._retreat_keep: int | None = None
        self._drag: _DragState | None = None
        self._tasks: set[asyncio.Future[Any]] = set()

        self._show_timer = TimerSlot("show-timer", scheduler)
        self._hide_timer = TimerSlot("hide-timer", scheduler)
        self._retreat_timer = TimerSlot("retreat-timer", scheduler)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def stack(self) -> tuple[TooltipInstance, ...]:
        return tuple(self._stack)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def top(self) -> TooltipInstance | None:
        return self._stack[-1] if self._stack else None

    @property
    def current_anchor(self) -> Tag | None:
        return self._current_anchor

    @property
    def show_pending(self) -> bool:
        return self._show_timer.pending

    @property
    def hide_pending(self) -> bool:
        return self._hide_timer.pending

    def instance(self, tooltip_id: str) -> TooltipInstance | None:
        for instance in self._stack:
            if instance.id == tooltip_id:
                return instance
        return None

    def index_of(self, instance: TooltipInstance | None) -> int:
        for index, candidate in enumerate(self._stack):
            if candidate is instance:
                return index
        return -1

    def containing_instance(self, element: PageElement | None) -> TooltipInstance | None:
        container = closest(element, CONTAINER_SELECTOR)
        if container is None:
            return None
        for instance in self._stack:
            if instance.container is container:
                return instance
        return None

    def anchor_depth(self, anchor: Tag) -> int:
        """0 for page anchors, else one past the index of the containing tooltip."""

        return self.index_of(self.containing_instance(anchor)) + 1

    def hover_anchor(self, element: PageElement | None) -> Tag | None:
        return closest(element, HOVER_SELECTOR)

    def is_in_system(self, element: PageElement | None) -> bool:
        return closest(element, SYSTEM_SELECTOR) is not None or self.hover_anchor(element) is not None

    def hover_meta(self, anchor: Tag) -> HoverMeta | None:
        """Read type/name/source, falling back to legacy attributes and text."""

        ref_type = anchor.get("data-hover-type") or anchor.get("data-tooltip-type")
        name = anchor.get("data-hover-name") or anchor.get("data-tooltip-name") or anchor.get_text().strip()
        source = anchor.get("data-hover-source") or anchor.get("data-tooltip-source") or self._settings.default_source
        if not ref_type or not name:
            return None
        inline = anchor.get("data-hover-content")
        if ref_type not in _INLINE_LABELS:
            inline = None
        return HoverMeta(type=str(ref_type), name=str(name), source=str(source or DEFAULT_SOURCE), inline_content=inline)

    # ------------------------------------------------------------------
    # Pointer and focus input
    # ------------------------------------------------------------------
    def pointer_over(self, target: PageElement | None, x: float, y: float) -> None:
        """Pointer moved onto *target* at viewport coordinates ``(x, y)``."""

        self._pointer = (x, y)
        element = as_tag(target)
        in_system = self.is_in_system(element)
        if in_system:
            self._hide_timer.cancel()
            self._cancel_retreat_if_reentered(element)

        anchor = self.hover_anchor(element)
        if anchor is None:
            self._current_anchor = None
            self._cancel_pending_show()
            if not in_system:
                self._leave_system()
            return
        # Repeated moves over the active target neither restart the delay nor re-resolve.
        if anchor is self._current_anchor:
            return
        self._hover_enter(anchor)

    def pointer_out(self, source: PageElement | None, target: PageElement | None) -> None:
        """Pointer left *source* for *target*; handles retreat to a shallower tooltip."""

        from_element, to_element = as_tag(source), as_tag(target)
        from_in, to_in = self.is_in_system(from_element), self.is_in_system(to_element)
        if from_in and to_in:
            from_container = closest(from_element, CONTAINER_SELECTOR)
            to_container = closest(to_element, CONTAINER_SELECTOR)
            if from_container is None or from_container is to_container:
                return
            from_index = self.index_of(self.containing_instance(from_element))
            to_index = self.index_of(self.containing_instance(to_element)) if to_container is not None else -1
            if from_index > to_index:
                keep = to_index + 1
                LOGGER.debug("Retreating from tooltip %d to %d", from_index, to_index)
                self._retreat_keep = keep
                self._retreat_timer.start(self._settings.retreat_delay, lambda: self._retreat(keep))
            return
        if from_in and not to_in:
            self._cancel_pending_show()
            self._leave_system()

    def focus_in(self, target: PageElement | None, x: float | None = None, y: float | None = None) -> None:
        """Keyboard focus reached *target*; behaves like hovering it."""

        anchor = self.hover_anchor(target)
        if anchor is None:
            return
        if x is not None and y is not None:
            self._pointer = (x, y)
        self._hide_timer.cancel()
        if self._pending is not None and self._pending.anchor is anchor:
            return
        self._hover_enter(anchor)

    def click(self, target: PageElement | None) -> bool:
        """Route clicks on pin/close buttons; returns ``True`` when handled."""

        button = closest(target, ".tooltip-pin-btn, .tooltip-close-btn")
        if button is None:
            return False
        instance = self.containing_instance(button)
        if instance is None:
            return False
        if has_class(button, "tooltip-pin-btn"):
            self.toggle_pin(instance.id)
        else:
            self.close(instance.id)
        return True

    def handle_key(
        self,
        key: str,
        *,
        ctrl: bool = False,
        meta: bool = False,
        has_selection: bool = False,
        in_text_input: bool = False,
    ) -> bool:
        """Apply the tooltip shortcuts; returns ``True`` when the key was consumed."""

        top = self.top
        if top is None:
            return False
        modifier = ctrl or meta
        lowered = key.lower() if len(key) == 1 else key
        if modifier and lowered == "p":
            self.toggle_pin(top.id)
            return True
        if modifier and lowered == "c" and not in_text_input and not has_selection:
            self.copy(top.id)
            return True
        if key == "Escape":
            if top.is_pinned:
                self.close(top.id)
            else:
                self.hide_top()
            return True
        return False

    # ------------------------------------------------------------------
    # Instance actions
    # ------------------------------------------------------------------
    def toggle_pin(self, tooltip_id: str) -> bool:
        instance = self.instance(tooltip_id)
        if instance is None:
            return False
        instance.is_pinned = not instance.is_pinned
        pin_button = instance.tooltip.select_one(".tooltip-pin-btn")
        drag_handle = instance.tooltip.select_one(".tooltip-drag-handle")
        if instance.is_pinned:
            add_class(instance.tooltip, "pinned")
            if pin_button is not None:
                add_class(pin_button, "active")
                pin_button["title"] = UNPIN_TITLE
            if drag_handle is not None:
                drag_handle["style"] = "display: flex"
        else:
            remove_class(instance.tooltip, "pinned")
            if pin_button is not None:
                remove_class(pin_button, "active")
                pin_button["title"] = PIN_TITLE
            if drag_handle is not None:
                drag_handle["style"] = "display: none"
            if self._drag is not None and self._drag.instance is instance:
                self._drag = None
        LOGGER.debug("Tooltip %s pinned=%s", instance.id, instance.is_pinned)
        self._publish(TooltipPinChanged(tooltip_id=instance.id, pinned=instance.is_pinned))
        return True

    def close(self, tooltip_id: str) -> bool:
        """Close exactly this instance; deeper instances stay open."""

        instance = self.instance(tooltip_id)
        if instance is None:
            return False
        self._remove(instance, reason="closed", animate=True)
        return True

    def hide_top(self) -> bool:
        """Close the topmost unpinned instance."""

        for instance in reversed(self._stack):
            if not instance.is_pinned:
                self._remove(instance, reason="hidden", animate=True)
                return True
        return False

    def clear(self) -> None:
        """Close every instance, pinned or not, and cancel all timers."""

        self._show_timer.cancel()
        self._hide_timer.cancel()
        self._retreat_timer.cancel()
        self._pending = None
        self._current_anchor = None
        self._drag = None
        for instance in list(reversed(self._stack)):
            self._remove(instance, reason="cleared", animate=True)

    def copy(self, tooltip_id: str) -> str | None:
        instance = self.instance(tooltip_id)
        if instance is None:
            return None
        text = instance.content.get_text(" ", strip=True)
        self._host.copy_text(text)
        self._publish(TooltipContentCopied(tooltip_id=instance.id, text=text))
        return text

    # ------------------------------------------------------------------
    # Dragging
    # ------------------------------------------------------------------
    def begin_drag(
        self,
        tooltip_id: str,
        x: float,
        y: float,
        *,
        button: int = 0,
        target: PageElement | None = None,
    ) -> bool:
        instance = self.instance(tooltip_id)
        if instance is None or button != 0 or not instance.is_pinned:
            return False
        if target is not None and closest(target, INTERACTIVE_SELECTOR) is not None:
            return False
        self._drag = _DragState(instance=instance, offset_x=x - instance.x, offset_y=y - instance.y)
        return True

    def drag_to(self, x: float, y: float) -> tuple[int, int] | None:
        drag = self._drag
        if drag is None:
            return None
        instance = drag.instance
        if self.index_of(instance) < 0:
            self._drag = None
            return None
        left, top = clamp_to_viewport(
            x - drag.offset_x, y - drag.offset_y, instance.width, instance.height, self._host.viewport()
        )
        self._place(instance, left, top, len(self._stack))
        self._publish(TooltipMoved(tooltip_id=instance.id, x=left, y=top))
        return left, top

    def end_drag(self) -> None:
        self._drag = None

    @property
    def dragging(self) -> bool:
        return self._drag is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def settle(self) -> None:
        """Wait for in-flight resolutions to finish."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def dispose(self) -> None:
        self.clear()
        for task in list(self._tasks):
            task.cancel()

    # ------------------------------------------------------------------
    # Hover state machine
    # ------------------------------------------------------------------
    def _hover_enter(self, anchor: Tag) -> None:
        self._cancel_pending_show()
        self._current_anchor = anchor
        meta = self.hover_meta(anchor)
        if meta is None:
            return
        depth = self.anchor_depth(anchor)
        if depth < len(self._stack) and self._stack[depth].anchor is anchor:
            return

        # Only instances that survive the trim to this depth can make the hover circular.
        key = None if meta.inline_content is not None else ReferenceKey.build(meta.type, meta.name)
        if key is not None and self._is_open(key, self._surviving(depth)):
            LOGGER.debug("Circular reference %s is already open in the chain; ignoring hover", key)
            return

        LOGGER.debug("Hovering %s %r at depth %d", meta.type, meta.name, depth)
        request = _ShowRequest(anchor=anchor, meta=meta, depth=depth, key=key)
        self._pending = request
        self._show_timer.start(self._settings.show_delay, lambda: self._on_show_timer(request))

    def _on_show_timer(self, request: _ShowRequest) -> None:
        if self._pending is not request:
            return
        self._pending = None
        self._current_anchor = request.anchor
        self._trim(request.depth, reason="trimmed", animate=False)

        if request.key is not None and self._is_open(request.key):
            LOGGER.debug("Reference %s opened meanwhile; skipping", request.key)
            return
        if request.meta.inline_content is not None:
            self._open(request, _inline_body(request.meta))
            return
        task = self._scheduler.spawn(self._resolve_and_show(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _resolve_and_show(self, request: _ShowRequest) -> None:
        meta = request.meta
        try:
            entity = await self._resolver.resolve(meta.type, meta.name, meta.source)
            body = self._registry.format_tooltip(entity)
        except Exception:
            LOGGER.exception("Error showing tooltip for %s %r", meta.type, meta.name)
            body = error_body(meta.name, LOAD_FAILURE_MESSAGE)

        if request.anchor is not self._current_anchor:
            LOGGER.debug("Discarding stale result for %s %r", meta.type, meta.name)
            return
        if request.key is not None and self._is_open(request.key):
            LOGGER.debug("Reference %s opened while resolving; discarding", request.key)
            return
        self._open(request, body)

    def _cancel_pending_show(self) -> None:
        if self._pending is not None:
            self._show_timer.cancel()
            self._pending = None

    def _leave_system(self) -> None:
        self._current_anchor = None
        if self._stack and not self._hide_timer.pending:
            self._hide_timer.start(self._settings.hide_delay, self._hide_unpinned)

    def _hide_unpinned(self) -> None:
        self._current_anchor = None
        while self._stack and not self._stack[-1].is_pinned:
            self._remove(self._stack[-1], reason="hidden", animate=True)

    def _retreat(self, keep: int) -> None:
        self._retreat_keep = None
        self._trim(keep, reason="trimmed", animate=True)

    def _cancel_retreat_if_reentered(self, element: Tag | None) -> None:
        if self._retreat_keep is None or not self._retreat_timer.pending:
            return
        if self.index_of(self.containing_instance(element)) >= self._retreat_keep:
            self._retreat_timer.cancel()
            self._retreat_keep = None

    def _trim(self, depth: int, *, reason: str, animate: bool) -> None:
        """Remove instances above *depth*, stopping at the first pinned one."""

        while len(self._stack) > depth:
            top = self._stack[-1]
            if top.is_pinned:
                LOGGER.debug("Stopped trimming at pinned tooltip index %d", len(self._stack) - 1)
                break
            self._remove(top, reason=reason, animate=animate)

    def _surviving(self, depth: int) -> list[TooltipInstance]:
        """Instances a trim to *depth* would leave open."""

        keep = depth
        for index in range(len(self._stack) - 1, depth - 1, -1):
            if self._stack[index].is_pinned:
                keep = index + 1
                break
        return self._stack[:keep]

    def _is_open(self, key: ReferenceKey, instances: list[TooltipInstance] | None = None) -> bool:
        candidates = self._stack if instances is None else instances
        return any(instance.reference_key == key for instance in candidates)

    # ------------------------------------------------------------------
    # Element construction
    # ------------------------------------------------------------------
    def _open(self, request: _ShowRequest, body: str) -> TooltipInstance:
        tooltip_id = f"tooltip-{next(self._ids)}"
        container, tooltip, content = self._build(tooltip_id, body)
        parent = self.containing_instance(request.anchor)
        instance = TooltipInstance(
            id=tooltip_id,
            anchor=request.anchor,
            parent_id=parent.id if parent is not None else None,
            reference_key=request.key,
            container=container,
            tooltip=tooltip,
            content=content,
        )
        instance.width, instance.height = self._host.measure(body)
        x, y = self._pointer
        left, top = compute_position(
            x,
            y,
            instance.width,
            instance.height,
            self._host.viewport(),
            offset=self._settings.tooltip_offset,
            margin=self._settings.viewport_margin,
        )
        self._place(instance, left, top, len(self._stack))
        self._stack.append(instance)
        self._mount(container)
        LOGGER.debug("Opened %s at depth %d (%s)", tooltip_id, len(self._stack) - 1, request.key)
        self._publish(
            TooltipOpened(
                tooltip_id=tooltip_id,
                depth=len(self._stack) - 1,
                reference_key=str(request.key) if request.key is not None else None,
                x=left,
                y=top,
            )
        )
        return instance

    def _build(self, tooltip_id: str, body: str) -> tuple[Tag, Tag, Tag]:
        document = self._document
        container = document.new_tag("div", class_="tooltip-container", data_tooltip_id=tooltip_id)
        tooltip = document.new_tag("div", class_="tooltip show")
        actions = document.new_tag("div", class_="tooltip-actions")
        actions.append(document.new_tag("div", class_="tooltip-drag-handle", style="display: none"))
        actions.append(document.new_tag("button", class_="tooltip-action-btn tooltip-pin-btn", title=PIN_TITLE))
        actions.append(document.new_tag("button", class_="tooltip-action-btn tooltip-close-btn", title=CLOSE_TITLE))
        content = document.new_tag("div", class_="tooltip-body")
        for node in document.fragment(body):
            content.append(node)
        tooltip.append(actions)
        tooltip.append(content)
        container.append(tooltip)
        return container, tooltip, content

    def _mount(self, container: Tag) -> None:
        target = self._document.select_one(".modal.show") or self._document.body
        self._document.append(target, container)

    def _place(self, instance: TooltipInstance, left: int, top: int, z_offset: int) -> None:
        instance.x, instance.y = left, top
        z_index = instance.container.get("data-z-index") or str(BASE_Z_INDEX + z_offset)
        instance.container["data-z-index"] = z_index
        instance.container["style"] = f"display: block; left: {left}px; top: {top}px; z-index: {z_index}; pointer-events: auto"

    def _remove(self, instance: TooltipInstance, *, reason: str, animate: bool) -> None:
        index = self.index_of(instance)
        if index < 0:
            return
        del self._stack[index]
        if self._drag is not None and self._drag.instance is instance:
            self._drag = None
        container = instance.container
        if animate:
            remove_class(instance.tooltip, "show")
            add_class(instance.tooltip, "hide")
            self._scheduler.call_later(self._settings.close_animation, lambda: self._document.remove(container))
        else:
            self._document.remove(container)
        LOGGER.debug("Removed %s (%s)", instance.id, reason)
        self._publish(TooltipClosed(tooltip_id=instance.id, reason=reason))

    def _publish(self, event: Any) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)


def _inline_body(meta: HoverMeta) -> str:
    label = _INLINE_LABELS.get(meta.type, "Feature")
    return (
        f'<div class="tooltip-content" data-type="{escape_html(meta.type)}">'
        f'<div class="tooltip-title">{escape_html(meta.name)}</div>'
        f'<div class="tooltip-metadata">{label}</div>'
        f'<div class="tooltip-description"><p>{meta.inline_content}</p></div>'
        "</div>"
    )
