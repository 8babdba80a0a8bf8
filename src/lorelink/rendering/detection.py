"""Structural entity-kind detection for resolved payloads.

Payloads carry no explicit discriminant, so the kind is inferred from the
fields present. The rules below are evaluated in order and the first match
wins; several entity shapes satisfy more than one rule, so the order is the
tie-break policy and must not be rearranged.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

__all__ = ["DETECTION_RULES", "DetectionRule", "GENERIC_KIND", "detect_kind", "matching_kinds"]

LOGGER = logging.getLogger(__name__)

GENERIC_KIND = "generic"

Payload = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class DetectionRule:
    kind: str
    predicate: Callable[[Payload], bool]

    def matches(self, payload: Payload) -> bool:
        try:
            return bool(self.predicate(payload))
        except Exception:
            LOGGER.debug("Detection rule %s failed", self.kind, exc_info=True)
            return False


def _present(payload: Payload, key: str) -> bool:
    return payload.get(key) is not None


def _type_mentions_reward(payload: Payload) -> bool:
    value = payload.get("type")
    if not value or not isinstance(value, (str, list, tuple)):
        return False
    return any(marker in value for marker in ("Charm", "Piety", "Blessing"))


DETECTION_RULES: tuple[DetectionRule, ...] = (
    DetectionRule("creature", lambda d: _present(d, "cr")),
    DetectionRule(
        "spell",
        lambda d: _present(d, "level") and not d.get("hd") and not d.get("skillProficiencies"),
    ),
    DetectionRule("class", lambda d: bool(d.get("hd"))),
    DetectionRule("feat", lambda d: bool(d.get("prerequisite")) and not d.get("skillProficiencies")),
    DetectionRule("background", lambda d: bool(d.get("skillProficiencies"))),
    DetectionRule(
        "race",
        lambda d: bool(d.get("size") or d.get("speed")) and not d.get("weapon") and not d.get("hd"),
    ),
    DetectionRule(
        "item",
        lambda d: bool(d.get("type") or d.get("weapon") or d.get("armor") or d.get("rarity")),
    ),
    DetectionRule("skill", lambda d: isinstance(d.get("ability"), str) and bool(d["ability"]) and not d.get("hd")),
    DetectionRule("action", lambda d: isinstance(d.get("time"), list)),
    DetectionRule("optionalfeature", lambda d: bool(d.get("featureType"))),
    DetectionRule("reward", _type_mentions_reward),
    DetectionRule("trap", lambda d: bool(d.get("trapHazType"))),
    DetectionRule("vehicle", lambda d: bool(d.get("vehicleType"))),
    DetectionRule("object", lambda d: bool(d.get("ac")) and bool(d.get("hp")) and not _present(d, "cr")),
    DetectionRule(
        "variantrule",
        lambda d: bool(d.get("ruleType")) or (d.get("type") == "variantrule" and bool(d.get("entries"))),
    ),
    DetectionRule("table", lambda d: bool(d.get("colLabels")) and bool(d.get("rows"))),
    DetectionRule("condition", lambda d: bool(d.get("entries"))),
)


def detect_kind(payload: Payload | None) -> str:
    """Return the kind of the first rule matching *payload*, else ``"generic"``."""

    if not isinstance(payload, Mapping):
        return GENERIC_KIND
    for rule in DETECTION_RULES:
        if rule.matches(payload):
            return rule.kind
    return GENERIC_KIND


def matching_kinds(payload: Payload | None) -> list[str]:
    """Return every kind whose rule matches, in priority order."""

    if not isinstance(payload, Mapping):
        return []
    return [rule.kind for rule in DETECTION_RULES if rule.matches(payload)]
