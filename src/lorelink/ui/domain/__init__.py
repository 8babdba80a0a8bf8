"""Domain layer for the reference tooltip runtime.

Domain managers hold state and apply transitions without touching Qt. They
receive dependencies through their constructors and report changes on the
event bus.

Domain Managers:
    - TooltipStackManager: hover chain of nested reference tooltips
    - TextBatchProcessor: renders tag markup in inserted content
"""

from __future__ import annotations

from .positioning import Viewport, clamp_to_viewport, compute_position
from .text_processor import ProcessOptions, TextBatchProcessor
from .tooltip_stack import HeadlessTooltipHost, HoverMeta, TooltipHost, TooltipInstance, TooltipStackManager

__all__: list[str] = [
    "HeadlessTooltipHost",
    "HoverMeta",
    "ProcessOptions",
    "TextBatchProcessor",
    "TooltipHost",
    "TooltipInstance",
    "TooltipStackManager",
    "Viewport",
    "clamp_to_viewport",
    "compute_position",
]
