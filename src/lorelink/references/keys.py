"""Reference keys used to spot an entity already open in the hover chain."""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = ["ReferenceKey", "normalize_for_lookup"]

_APOSTROPHES = str.maketrans({"‘": "'", "’": "'", "ʼ": "'"})
_WHITESPACE = re.compile(r"\s+")


def normalize_for_lookup(name: object) -> str:
    """Case-fold and trim *name*, folding curly apostrophes and whitespace runs."""

    if name is None:
        return ""
    text = str(name).translate(_APOSTROPHES).strip().lower()
    return _WHITESPACE.sub(" ", text)


@dataclass(frozen=True, slots=True)
class ReferenceKey:
    """Normalized ``type:name`` identity; the source is deliberately absent."""

    type: str
    name: str

    @classmethod
    def build(cls, ref_type: str, raw_name: object) -> ReferenceKey:
        return cls(type=ref_type, name=normalize_for_lookup(raw_name))

    def __str__(self) -> str:
        return f"{self.type}:{self.name}"
