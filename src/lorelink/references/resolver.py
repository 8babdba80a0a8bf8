"""Dispatch entity references to their typed lookup services.

The resolver is total: every call returns either the entity payload or an
error shape ``{"name": ..., "error": ...}`` that the tooltip layer renders as
a short error body. Exceptions from lookup services never escape it.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any

from ..markup.tokens import DEFAULT_SOURCE

__all__ = [
    "DispatchEntry",
    "ReferenceResolver",
    "ResolvedEntity",
    "STANDARD_DISPATCH",
    "error_result",
    "is_error",
]

LOGGER = logging.getLogger(__name__)

ResolvedEntity = dict[str, Any]

# (reference type, attribute on the services container, accessor method)
STANDARD_DISPATCH: tuple[tuple[str, str, str], ...] = (
    ("action", "actions", "get_action"),
    ("background", "backgrounds", "get_background"),
    ("class", "classes", "get_class"),
    ("condition", "conditions", "get_condition"),
    ("feat", "feats", "get_feat"),
    ("feature", "optional_features", "get_feature_by_name"),
    ("optfeature", "optional_features", "get_feature_by_name"),
    ("optionalfeature", "optional_features", "get_feature_by_name"),
    ("item", "items", "get_item"),
    ("creature", "monsters", "get_monster"),
    ("monster", "monsters", "get_monster"),
    ("race", "races", "get_race"),
    ("skill", "skills", "get_skill"),
    ("spell", "spells", "get_spell"),
    ("variantrule", "variant_rules", "get_variant_rule"),
)


@dataclass(frozen=True, slots=True)
class DispatchEntry:
    """A lookup service paired with the name of its accessor method."""

    service: Any
    method: str


def error_result(name: str, message: str) -> ResolvedEntity:
    """Build the structured failure shape returned by :class:`ReferenceResolver`."""

    return {"name": name, "error": message}


def is_error(entity: Mapping[str, Any] | None) -> bool:
    return bool(entity) and bool(entity.get("error"))  # type: ignore[union-attr]


class ReferenceResolver:
    """Resolve ``(type, name, source)`` triples through a fixed dispatch table."""

    __slots__ = ("_table", "_default_source")

    def __init__(
        self,
        table: Mapping[str, DispatchEntry],
        *,
        default_source: str = DEFAULT_SOURCE,
    ) -> None:
        self._table: dict[str, DispatchEntry] = dict(table)
        self._default_source = default_source

    @classmethod
    def from_services(cls, services: Any, *, default_source: str = DEFAULT_SOURCE) -> ReferenceResolver:
        """Build the standard dispatch table from a services container.

        Types whose service attribute is missing or ``None`` are left out, so
        they fail closed as unknown types.
        """

        table: dict[str, DispatchEntry] = {}
        for ref_type, attribute, method in STANDARD_DISPATCH:
            service = getattr(services, attribute, None)
            if service is None:
                LOGGER.debug("No service configured for reference type %s", ref_type)
                continue
            table[ref_type] = DispatchEntry(service=service, method=method)
        return cls(table, default_source=default_source)

    def types(self) -> tuple[str, ...]:
        return tuple(sorted(self._table))

    def supports(self, ref_type: str) -> bool:
        return ref_type in self._table

    async def resolve(self, ref_type: str, name: str, source: str | None = None) -> ResolvedEntity:
        """Resolve one reference; never raises.

        Args:
            ref_type: Entity type name, e.g. ``"spell"``.
            name: Entity name as written in the markup.
            source: Source code; the default source applies when omitted.

        Returns:
            The entity payload as a plain dict, or an error shape.
        """

        entry = self._table.get(ref_type)
        if entry is None:
            LOGGER.warning("Unknown reference type: %s", ref_type)
            return error_result(name, f"Unknown reference type: {ref_type}")

        effective_source = source or self._default_source
        try:
            accessor = getattr(entry.service, entry.method, None)
            if accessor is None or not callable(accessor):
                LOGGER.warning("Service for %s does not have %s method", ref_type, entry.method)
                return error_result(name, f"Cannot resolve {ref_type}")

            # Condition and skill accessors accept the source and ignore it.
            result = accessor(name, effective_source)
            if inspect.isawaitable(result):
                result = await result

            if not result:
                return error_result(name, f"{ref_type} not found")
            return _as_payload(result)
        except Exception as exc:
            LOGGER.exception("Error resolving %s %r (source %s)", ref_type, name, effective_source)
            return error_result(name, str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Typed convenience resolvers
    # ------------------------------------------------------------------
    async def resolve_spell(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("spell", name, source)

    async def resolve_class(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("class", name, source)

    async def resolve_race(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("race", name, source)

    async def resolve_item(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("item", name, source)

    async def resolve_feat(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("feat", name, source)

    async def resolve_background(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("background", name, source)

    async def resolve_action(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("action", name, source)

    async def resolve_creature(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("creature", name, source)

    async def resolve_variant_rule(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("variantrule", name, source)

    async def resolve_feature(self, name: str, source: str | None = None) -> ResolvedEntity:
        return await self.resolve("feature", name, source)

    async def resolve_condition(self, name: str) -> ResolvedEntity:
        return await self.resolve("condition", name)

    async def resolve_skill(self, name: str) -> ResolvedEntity:
        return await self.resolve("skill", name)


def _as_payload(result: Any) -> ResolvedEntity:
    if isinstance(result, Mapping):
        return dict(result)
    if is_dataclass(result) and not isinstance(result, type):
        return asdict(result)
    if hasattr(result, "__dict__"):
        return {key: value for key, value in vars(result).items() if not key.startswith("_")}
    raise TypeError(f"Unsupported entity payload: {type(result).__name__}")
