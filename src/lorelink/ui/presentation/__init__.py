"""Presentation layer: Qt widgets that draw tooltips and forward input.

Widgets subscribe to tooltip events and delegate pointer and keyboard input
to the :class:`~lorelink.ui.domain.TooltipStackManager`. They hold no
tooltip state of their own.
"""

from __future__ import annotations

from .qt_host import QtTooltipHost, ReferenceBrowser, ReferenceWindow, TooltipFrame

__all__ = [
    "QtTooltipHost",
    "ReferenceBrowser",
    "ReferenceWindow",
    "TooltipFrame",
]
