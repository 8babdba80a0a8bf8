"""Tag renderer turning ``{@kind args}`` markup into display markup."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Literal

from .tokens import TAG_OPEN, TAG_PATTERN, escape_html, split_fields

__all__ = ["TagHandler", "TagRenderer", "RenderMode", "has_markup"]

LOGGER = logging.getLogger(__name__)

TagHandler = Callable[[str], str]
RenderMode = Literal["tooltip", "display_name"]


def has_markup(text: str | None) -> bool:
    """Return ``True`` when *text* contains the tag-open sentinel."""

    return bool(text) and TAG_OPEN in text  # type: ignore[operator]


class TagRenderer:
    """Registry of tag handlers plus the substitution pass over text.

    One instance is built at startup and shared through the reference
    context; handlers are expected to be registered before rendering starts.
    """

    __slots__ = ("_handlers", "_reference_kinds")

    def __init__(self) -> None:
        self._handlers: dict[str, TagHandler] = {}
        self._reference_kinds: set[str] = set()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def register_handler(self, kind: str, handler: TagHandler, *, reference: bool = False) -> None:
        """Register *handler* for *kind*; a later registration replaces an earlier one.

        Args:
            kind: Tag name, matched case-sensitively.
            handler: Callable receiving the raw args string and returning markup.
            reference: Marks the kind as an entity reference producing a hover anchor.
        """

        if kind in self._handlers:
            LOGGER.debug("Replacing handler for tag kind %s", kind)
        self._handlers[kind] = handler
        if reference:
            self._reference_kinds.add(kind)
        else:
            self._reference_kinds.discard(kind)

    def has_handler(self, kind: str) -> bool:
        return kind in self._handlers

    def is_reference_kind(self, kind: str) -> bool:
        return kind in self._reference_kinds

    def kinds(self) -> tuple[str, ...]:
        return tuple(sorted(self._handlers))

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def render(self, kind: str, args: str | None) -> str:
        """Render one tag; never raises."""

        raw_args = args or ""
        handler = self._handlers.get(kind)
        if handler is None:
            LOGGER.warning("Unknown tag kind: %s", kind)
            return _fallback(raw_args)
        try:
            rendered = handler(raw_args)
        except Exception:
            LOGGER.exception("Handler for tag kind %s failed on %r", kind, raw_args)
            return _fallback(raw_args)
        if not isinstance(rendered, str):
            LOGGER.warning("Handler for tag kind %s returned %s", kind, type(rendered).__name__)
            return _fallback(raw_args)
        return rendered

    def process_string(self, text: str | None, *, mode: RenderMode = "tooltip") -> str:
        """Replace every ``{@kind args}`` in *text* with its rendered markup.

        In ``display_name`` mode entity references collapse to their escaped
        name, for labels that should not grow interactive anchors.
        """

        if not text:
            return ""

        def _substitute(match: Any) -> str:
            kind = match.group(1)
            raw_args = match.group(2) or ""
            if mode == "display_name" and kind in self._reference_kinds:
                return _fallback(raw_args)
            return self.render(kind, raw_args)

        return TAG_PATTERN.sub(_substitute, text)

    def process_entries(self, entries: Any) -> str:
        """Flatten a nested entries structure into rendered text."""

        if entries is None:
            return ""
        if isinstance(entries, str):
            return self.process_string(entries)
        if isinstance(entries, Mapping):
            nested = entries.get("entries")
            return self.process_entries(nested) if nested else ""
        if not isinstance(entries, Iterable):
            return self.process_string(str(entries))
        parts: list[str] = []
        for entry in entries:
            if isinstance(entry, str):
                parts.append(self.process_string(entry))
            elif isinstance(entry, Mapping) and entry.get("entries"):
                parts.append(self.process_entries(entry["entries"]))
            else:
                parts.append("")
        return " ".join(parts)


def _fallback(raw_args: str) -> str:
    return escape_html(split_fields(raw_args)[0])
