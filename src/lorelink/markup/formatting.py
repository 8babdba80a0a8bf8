"""Lightweight inline formatting for text that carries no tags."""

from __future__ import annotations

import re

__all__ = ["apply_inline_formatting"]

_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<!\*)\*(?!\*)(.+?)(?<!\*)\*(?!\*)")


def apply_inline_formatting(text: str | None) -> str:
    """Turn ``**bold**`` and ``*italic*`` runs into ``<strong>``/``<em>``."""

    if not text:
        return ""
    formatted = _BOLD.sub(r"<strong>\1</strong>", text)
    return _ITALIC.sub(r"<em>\1</em>", formatted)
