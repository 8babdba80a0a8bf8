"""UI package: tooltip runtime, content processing and the Qt shell.

The Qt widgets live in :mod:`lorelink.ui.presentation` and are not imported
here so headless callers never load PySide6.
"""

from .context import ReferenceContext, build_reference_context
from .dom import ContentDocument
from .events import EventBus

__all__ = [
    "ContentDocument",
    "EventBus",
    "ReferenceContext",
    "build_reference_context",
]
