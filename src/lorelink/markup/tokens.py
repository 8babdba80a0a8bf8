"""Token model and scanner for the ``{@kind args}`` inline markup."""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Iterator

__all__ = [
    "DEFAULT_SOURCE",
    "HOVER_LINK_CLASS",
    "LEGACY_LINK_CLASS",
    "TAG_OPEN",
    "TAG_PATTERN",
    "TagToken",
    "escape_html",
    "scan",
    "split_fields",
]

DEFAULT_SOURCE = "PHB"
HOVER_LINK_CLASS = "rd__hover-link"
LEGACY_LINK_CLASS = "reference-link"
TAG_OPEN = "{@"

# Args end at the first unescaped closing brace; ``\}`` and ``\|`` stay inside.
TAG_PATTERN = re.compile(r"\{@(\w+)(?:\s+((?:\\.|[^}\\])*))?\}")

_FIELD_SPLIT = re.compile(r"(?<!\\)\|")
_ESCAPED_CHAR = re.compile(r"\\([{}|\\])")


def escape_html(text: object) -> str:
    """Escape ``& < > " '`` for safe insertion into markup."""

    if text is None:
        return ""
    return html.escape(str(text), quote=True)


def split_fields(raw_args: str | None) -> list[str]:
    """Split *raw_args* on unescaped pipes and trim each field."""

    if not raw_args:
        return [""]
    return [_ESCAPED_CHAR.sub(r"\1", part).strip() for part in _FIELD_SPLIT.split(raw_args)]


@dataclass(frozen=True, slots=True)
class TagToken:
    """Immutable view of one ``{@kind args}`` occurrence."""

    kind: str
    raw_args: str = ""

    @property
    def fields(self) -> list[str]:
        return split_fields(self.raw_args)

    @property
    def name(self) -> str:
        return self.fields[0]

    @property
    def source(self) -> str:
        return self.source_or(DEFAULT_SOURCE)

    def source_or(self, default: str) -> str:
        fields = self.fields
        if len(fields) > 1 and fields[1]:
            return fields[1]
        return default


def scan(text: str | None) -> Iterator[tuple[re.Match[str], TagToken]]:
    """Yield every tag in *text*, left to right and non-overlapping."""

    if not text:
        return
    for match in TAG_PATTERN.finditer(text):
        yield match, TagToken(kind=match.group(1), raw_args=match.group(2) or "")
