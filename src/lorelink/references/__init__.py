"""Reference keys and the typed reference resolver."""

from .keys import ReferenceKey, normalize_for_lookup
from .resolver import (
    STANDARD_DISPATCH,
    DispatchEntry,
    ReferenceResolver,
    ResolvedEntity,
    error_result,
    is_error,
)

__all__ = [
    "DispatchEntry",
    "ReferenceKey",
    "ReferenceResolver",
    "ResolvedEntity",
    "STANDARD_DISPATCH",
    "error_result",
    "is_error",
    "normalize_for_lookup",
]
