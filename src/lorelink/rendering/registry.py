"""Entity renderer registry: detect a payload's kind, then format it."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from ..markup.renderer import TagRenderer
from ..markup.tokens import escape_html
from .detection import GENERIC_KIND, detect_kind
from .statblocks import STAT_BLOCK_FORMATTERS, StatBlockFormatter, render_generic

__all__ = ["EntityRendererRegistry", "NO_DATA_BODY", "error_body"]

LOGGER = logging.getLogger(__name__)

NO_DATA_BODY = "<em>No data available</em>"
LOAD_FAILURE_MESSAGE = "Error loading details"


def error_body(name: Any, message: Any) -> str:
    """Minimal tooltip body for a structured failure."""

    return f"<strong>{escape_html(name or 'Unknown')}</strong><br><small>{escape_html(message)}</small>"


class EntityRendererRegistry:
    """Maps entity kinds to stat block formatters with a generic fallback."""

    def __init__(self, tags: TagRenderer, *, install_defaults: bool = True) -> None:
        self._tags = tags
        self._formatters: dict[str, StatBlockFormatter] = {}
        if install_defaults:
            self._formatters.update(STAT_BLOCK_FORMATTERS)

    def register(self, kind: str, formatter: StatBlockFormatter) -> None:
        self._formatters[kind] = formatter

    def has_renderer(self, kind: str) -> bool:
        return kind in self._formatters

    def render(self, kind: str, payload: Mapping[str, Any]) -> str:
        """Format *payload* as *kind*, degrading to the generic formatter."""

        formatter = self._formatters.get(kind)
        if formatter is None or kind == GENERIC_KIND:
            return render_generic(payload, self._tags)
        try:
            return formatter(payload, self._tags)
        except Exception:
            LOGGER.exception("Formatter for %s failed on %r", kind, payload.get("name"))
            return render_generic(payload, self._tags)

    def format_tooltip(self, entity: Mapping[str, Any] | None) -> str:
        """Turn a resolver result into a tooltip body; never raises."""

        if not entity:
            return NO_DATA_BODY
        try:
            if entity.get("error"):
                return error_body(entity.get("name"), entity["error"])
            return self.render(detect_kind(entity), entity)
        except Exception:
            LOGGER.exception("Failed to format tooltip body")
            name = entity.get("name") if isinstance(entity, Mapping) else None
            return error_body(name, LOAD_FAILURE_MESSAGE)
