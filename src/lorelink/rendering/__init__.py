"""Entity kind detection and stat block rendering for tooltip bodies."""

from .detection import DETECTION_RULES, GENERIC_KIND, DetectionRule, detect_kind, matching_kinds
from .registry import NO_DATA_BODY, EntityRendererRegistry, error_body
from .statblocks import STAT_BLOCK_FORMATTERS, render_entries, render_generic

__all__ = [
    "DETECTION_RULES",
    "DetectionRule",
    "EntityRendererRegistry",
    "GENERIC_KIND",
    "NO_DATA_BODY",
    "STAT_BLOCK_FORMATTERS",
    "detect_kind",
    "error_body",
    "matching_kinds",
    "render_entries",
    "render_generic",
]
