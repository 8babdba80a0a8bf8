"""Inline ``{@kind args}`` markup: tokens, renderer and built-in handlers."""

from .formatting import apply_inline_formatting
from .handlers import REFERENCE_KINDS, register_default_handlers, reference_anchor
from .renderer import TagHandler, TagRenderer, has_markup
from .tokens import (
    DEFAULT_SOURCE,
    HOVER_LINK_CLASS,
    LEGACY_LINK_CLASS,
    TagToken,
    escape_html,
    scan,
    split_fields,
)


def build_tag_renderer(default_source: str = DEFAULT_SOURCE) -> TagRenderer:
    """Return a renderer with every built-in handler registered."""

    return register_default_handlers(TagRenderer(), default_source=default_source)


__all__ = [
    "DEFAULT_SOURCE",
    "HOVER_LINK_CLASS",
    "LEGACY_LINK_CLASS",
    "REFERENCE_KINDS",
    "TagHandler",
    "TagRenderer",
    "TagToken",
    "apply_inline_formatting",
    "build_tag_renderer",
    "escape_html",
    "has_markup",
    "reference_anchor",
    "register_default_handlers",
    "scan",
    "split_fields",
]
