"""Small text helpers for game data fields shown in stat blocks."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

__all__ = [
    "ability_increase_text",
    "ability_name",
    "components_text",
    "duration_text",
    "format_prerequisite",
    "number_word",
    "ordinal",
    "range_text",
    "school_name",
    "size_name",
    "speed_text",
]

SCHOOLS: dict[str, str] = {
    "A": "Abjuration",
    "C": "Conjuration",
    "D": "Divination",
    "E": "Enchantment",
    "I": "Illusion",
    "N": "Necromancy",
    "T": "Transmutation",
    "V": "Evocation",
}

SIZES: dict[str, str] = {
    "F": "Fine",
    "D": "Diminutive",
    "T": "Tiny",
    "S": "Small",
    "M": "Medium",
    "L": "Large",
    "H": "Huge",
    "G": "Gargantuan",
    "C": "Colossal",
    "V": "Varies",
}

ABILITIES: dict[str, str] = {
    "str": "Strength",
    "dex": "Dexterity",
    "con": "Constitution",
    "int": "Intelligence",
    "wis": "Wisdom",
    "cha": "Charisma",
}

SPEED_MODES: tuple[str, ...] = ("walk", "burrow", "climb", "fly", "swim")
_NUMBER_WORDS = ("zero", "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten")
_NO_SPEED = "—"


def ordinal(value: Any) -> str:
    """Return ``1st``/``2nd``/``3rd``/``11th`` style text, or ``""`` for non-numbers."""

    try:
        number = int(value)
    except (TypeError, ValueError):
        return ""
    last, last_two = number % 10, number % 100
    if last == 1 and last_two != 11:
        return f"{number}st"
    if last == 2 and last_two != 12:
        return f"{number}nd"
    if last == 3 and last_two != 13:
        return f"{number}rd"
    return f"{number}th"


def school_name(code: Any) -> str:
    return SCHOOLS.get(str(code), str(code)) if code else ""


def size_name(code: Any) -> str:
    if not code:
        return ""
    if isinstance(code, (list, tuple)):
        return "/".join(size_name(item) for item in code)
    return SIZES.get(str(code), str(code))


def ability_name(code: Any) -> str:
    if not code:
        return ""
    return ABILITIES.get(str(code).lower(), str(code))


def number_word(value: int) -> str:
    return _NUMBER_WORDS[value] if 0 <= value < len(_NUMBER_WORDS) else str(value)


def range_text(spell_range: Any) -> str:
    if not isinstance(spell_range, Mapping):
        return "Special"
    distance = spell_range.get("distance")
    if not isinstance(distance, Mapping):
        return "Special"
    kind = distance.get("type") or ""
    amount = distance.get("amount")
    if kind == "touch":
        return "Touch"
    if kind == "sight":
        return "Sight"
    if kind == "self":
        if amount:
            return f"Self ({amount}-foot {distance.get('subtype') or 'radius'})"
        return "Self"
    return f"{amount or ''} {kind}".strip()


def components_text(components: Any) -> str:
    if not isinstance(components, Mapping):
        return ""
    parts: list[str] = []
    if components.get("v"):
        parts.append("V")
    if components.get("s"):
        parts.append("S")
    material = components.get("m")
    if material:
        text = material if isinstance(material, str) else (material.get("text") if isinstance(material, Mapping) else None)
        parts.append(f"M ({text})" if text else "M")
    return ", ".join(parts)


def duration_text(duration: Any) -> str:
    if not isinstance(duration, Mapping):
        return "Unknown"
    kind = duration.get("type")
    if kind == "instant":
        return "Instantaneous"
    if kind == "permanent":
        return "Until dispelled"
    if kind == "special":
        return "Special"
    inner = duration.get("duration")
    if isinstance(inner, Mapping):
        prefix = "Concentration, up to " if duration.get("concentration") else ""
        return f"{prefix}{inner.get('amount') or ''} {inner.get('type') or ''}".strip()
    return str(kind) if kind else "Unknown"


def speed_text(value: Any) -> str:
    """Format a speed number, a speed mapping, or an entity holding ``speed``."""

    if isinstance(value, bool):
        return _NO_SPEED
    if isinstance(value, (int, float)):
        return f"{value} ft."
    if isinstance(value, Mapping) and "speed" in value and not any(mode in value for mode in SPEED_MODES):
        value = value.get("speed")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{value} ft."
    if not isinstance(value, Mapping) or not value:
        return _NO_SPEED

    hidden = value.get("hidden") or ()
    parts: list[str] = []
    for mode in SPEED_MODES:
        if mode not in value or mode in hidden:
            continue
        amount = value[mode]
        if mode == "walk" and amount == 0:
            continue
        label = "" if mode == "walk" else f"{mode} "
        if amount is True or isinstance(amount, (int, float)):
            number = 0 if amount is True else amount
            if number == 0 and mode != "walk":
                parts.append(f"{label}equal to your walking speed")
            else:
                parts.append(f"{label}{number} ft.")
        elif isinstance(amount, Mapping):
            condition = f" {amount['condition']}" if amount.get("condition") else ""
            parts.append(f"{label}{amount.get('number') or 0} ft.{condition}")

    choose = value.get("choose")
    if isinstance(choose, Mapping) and "choose" not in hidden:
        modes = " or ".join(mode for mode in sorted(choose.get("from") or ()) if mode != "walk")
        note = f" {choose['note']}" if choose.get("note") else ""
        parts.append(f"{modes} {choose.get('amount')} ft.{note}")

    text = ", ".join(parts)
    if value.get("note"):
        text = f"{text} {value['note']}"
    return text or _NO_SPEED


def format_prerequisite(prerequisite: Any) -> str:
    if isinstance(prerequisite, str):
        return prerequisite
    if isinstance(prerequisite, list):
        texts = [format_prerequisite(item) for item in prerequisite]
        return " or ".join(text for text in texts if text and text != "None") or "None"
    if not isinstance(prerequisite, Mapping):
        return "None"

    parts: list[str] = []
    if prerequisite.get("level"):
        level = prerequisite["level"]
        if isinstance(level, Mapping):
            level = level.get("level")
        parts.append(f"Level {level}")
    ability = prerequisite.get("ability")
    if isinstance(ability, Mapping):
        ability = [ability]
    for block in ability or ():
        if isinstance(block, Mapping):
            parts.extend(f"{str(code).upper()} {score}" for code, score in block.items())
    if prerequisite.get("spellcasting"):
        parts.append("Spellcasting")
    proficiency = prerequisite.get("proficiency")
    if proficiency:
        names: list[str] = []
        for entry in proficiency:
            if isinstance(entry, Mapping):
                names.extend(f"{value} {key}" if isinstance(value, str) else str(key) for key, value in entry.items())
            else:
                names.append(str(entry))
        parts.append(f"Proficiency with {', '.join(names)}")
    return ", ".join(parts) or "None"


def ability_increase_text(abilities: Any) -> str:
    """Summarize race ability bonuses, e.g. ``Strength +2, Constitution +1``."""

    if not isinstance(abilities, list) or not abilities:
        return ""
    fixed: dict[str, int] = {}
    choices: list[str] = []
    for block in abilities:
        if not isinstance(block, Mapping):
            continue
        choose = block.get("choose")
        if isinstance(choose, Mapping):
            options = ", ".join(ability_name(code) for code in choose.get("from") or ())
            count = int(choose.get("count") or 1)
            amount = choose.get("amount") or 1
            prefix = f"{number_word(count)} from " if count > 1 else ""
            choices.append(f"choose {prefix}{options} +{amount}")
        for code, value in block.items():
            if code == "choose" or not isinstance(value, (int, float)):
                continue
            fixed[code] = fixed.get(code, 0) + int(value)
    parts = [f"{ability_name(code)} +{value}" for code, value in fixed.items()]
    return ", ".join(parts + choices)
