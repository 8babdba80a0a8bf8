"""Viewport-aware placement for tooltip popups."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["Viewport", "clamp_to_viewport", "compute_position"]


@dataclass(frozen=True, slots=True)
class Viewport:
    width: int
    height: int


def _place_axis(pointer: float, size: float, extent: float, offset: float, margin: float) -> int:
    start = pointer + offset
    if start + size > extent:
        start = pointer - size - offset
        if start < 0:
            start = extent - size - offset
    # Never clamp below the margin, even when the popup is larger than the viewport.
    upper = max(margin, extent - size - margin)
    return int(round(min(max(start, margin), upper)))


def compute_position(
    x: float,
    y: float,
    width: float,
    height: float,
    viewport: Viewport,
    *,
    offset: float = 10,
    margin: float = 10,
) -> tuple[int, int]:
    """Place a popup next to the pointer: flip on overflow, then clamp.

    Returns:
        ``(left, top)`` keeping the popup inside the viewport margins.
    """

    return (
        _place_axis(x, width, viewport.width, offset, margin),
        _place_axis(y, height, viewport.height, offset, margin),
    )


def clamp_to_viewport(left: float, top: float, width: float, height: float, viewport: Viewport) -> tuple[int, int]:
    """Clamp a dragged popup to ``[0, viewport - size]`` on both axes."""

    max_left = max(0.0, viewport.width - width)
    max_top = max(0.0, viewport.height - height)
    return int(round(min(max(left, 0.0), max_left))), int(round(min(max(top, 0.0), max_top)))
