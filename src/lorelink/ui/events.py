"""Event bus infrastructure for decoupled UI component communication.

The tooltip stack manager and text processor publish state changes here;
presentation hosts subscribe without the domain layer knowing about them.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    Callable,
    Generic,
    TypeVar,
    TYPE_CHECKING,
)
from weakref import WeakMethod

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events in the system.

    Subclasses are ``@dataclass(slots=True)`` records of what happened.
    """

    pass


# High-frequency event types that should not log each publish
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Tooltip Events
# =============================================================================


@dataclass(slots=True)
class TooltipOpened(Event):
    """Emitted after a tooltip instance is pushed onto the stack.

    Attributes:
        tooltip_id: Identifier of the new instance.
        depth: Stack index of the instance.
        reference_key: ``type:name`` key, or ``None`` for inline tooltips.
        x: Left edge after viewport clamping.
        y: Top edge after viewport clamping.
    """

    tooltip_id: str
    depth: int
    reference_key: str | None
    x: int = 0
    y: int = 0


@dataclass(slots=True)
class TooltipClosed(Event):
    """Emitted when an instance leaves the stack.

    Attributes:
        tooltip_id: Identifier of the removed instance.
        reason: ``closed``, ``trimmed``, ``hidden`` or ``cleared``.
    """

    tooltip_id: str
    reason: str


@dataclass(slots=True)
class TooltipPinChanged(Event):
    tooltip_id: str
    pinned: bool


@dataclass(slots=True)
class TooltipMoved(Event):
    """Emitted while a pinned tooltip is dragged."""

    tooltip_id: str
    x: int
    y: int


_QUIET_EVENT_TYPES.add(TooltipMoved)


@dataclass(slots=True)
class TooltipContentCopied(Event):
    tooltip_id: str
    text: str


# =============================================================================
# Content Events
# =============================================================================


@dataclass(slots=True)
class ContentProcessed(Event):
    """Emitted after a batch of elements went through the tag renderer.

    Attributes:
        count: Number of elements whose markup changed.
    """

    count: int


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are stored as weak references where possible (bound methods),
    so a presentation widget going away does not keep receiving events.

    Thread Safety:
        Not thread-safe. Everything runs on the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register a handler to receive events of the specified type.

        Args:
            event_type: The class of events to subscribe to.
            handler: A callable that will be invoked with the event.
        """
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of *handler*; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return
        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                return

    def publish(self, event: E) -> None:
        """Deliver *event* to its handlers in registration order.

        A handler that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if not handlers:
            return
        if not is_quiet:
            logger.debug("Publishing %s to %d handler(s)", event_type.__name__, len(handlers))

        dead_refs: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead_refs.append(handler_ref)
                continue
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        for handler_ref in dead_refs:
            if handler_ref in handlers:
                handlers.remove(handler_ref)

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        """Return the number of handlers for *event_type*, or in total."""
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Weak reference for bound methods, strong reference for plain callables."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "ContentProcessed",
    "Event",
    "EventBus",
    "Handler",
    "TooltipClosed",
    "TooltipContentCopied",
    "TooltipMoved",
    "TooltipOpened",
    "TooltipPinChanged",
]
