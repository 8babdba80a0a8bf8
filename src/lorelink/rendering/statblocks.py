"""Per-kind stat block formatters for tooltip bodies.

Every formatter takes the resolved payload plus the shared tag renderer, so
references inside entry text become hover anchors of their own and can open
nested tooltips.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

from ..markup.renderer import TagRenderer
from ..markup.tokens import escape_html
from . import game_text

__all__ = [
    "STAT_BLOCK_FORMATTERS",
    "StatBlockFormatter",
    "render_entries",
    "render_generic",
    "render_source",
]

Payload = Mapping[str, Any]
StatBlockFormatter = Callable[[Payload, TagRenderer], str]

_DESCRIPTION_LIMIT = 150
_TRAP_TYPES = {
    "MECH": "Mechanical",
    "SMPL": "Simple",
    "CMPX": "Complex",
    "TRP": "Trap",
    "HAZ": "Hazard",
}
_RULE_TYPES = {"C": "Core Rule", "O": "Optional Rule"}


# ----------------------------------------------------------------------
# Shared pieces
# ----------------------------------------------------------------------
def _open(kind: str, data: Payload, fallback: str = "Unknown") -> str:
    title = escape_html(data.get("name") or fallback)
    return f'<div class="tooltip-content" data-type="{kind}"><div class="tooltip-title">{title}</div>'


def _close(data: Payload) -> str:
    return f"{render_source(data)}</div>"


def _metadata(rows: list[str]) -> str:
    if not rows:
        return ""
    return '<div class="tooltip-metadata">' + "".join(rows) + "</div>"


def _row(label: str, value: Any) -> str:
    return f"<strong>{label}:</strong> {escape_html(value)}<br>"


def render_source(data: Payload) -> str:
    source = data.get("source")
    if not source:
        return ""
    page = f" p. {escape_html(data['page'])}" if data.get("page") else ""
    return f'<div class="tooltip-source">{escape_html(source)}{page}</div>'


def render_entries(entries: Any, tags: TagRenderer, max_entries: int = 5) -> str:
    """Render at most *max_entries* entries; lists and sub-entries are capped too."""

    if not isinstance(entries, list):
        return ""
    html = ['<div class="tooltip-description">']
    for entry in entries[:max_entries]:
        if isinstance(entry, str):
            html.append(f"<p>{tags.process_string(entry)}</p>")
            continue
        if not isinstance(entry, Mapping):
            continue
        entry_type = entry.get("type")
        if entry_type == "list" and isinstance(entry.get("items"), list):
            if entry.get("style") == "list-hang-notitle":
                continue
            html.append("<ul>")
            for item in entry["items"][:5]:
                if isinstance(item, str):
                    html.append(f"<li>{tags.process_string(item)}</li>")
                elif isinstance(item, Mapping) and item.get("type") == "item" and item.get("entry"):
                    label = f"<strong>{escape_html(item['name'])}.</strong> " if item.get("name") else ""
                    html.append(f"<li>{label}{tags.process_string(item['entry'])}</li>")
            html.append("</ul>")
        elif entry_type == "entries":
            html.append(f"<p><strong>{escape_html(entry['name'])}.</strong> " if entry.get("name") else "<p>")
            for sub_entry in (entry.get("entries") or [])[:2]:
                if isinstance(sub_entry, str):
                    html.append(f"{tags.process_string(sub_entry)} ")
            html.append("</p>")
        elif entry_type == "table":
            html.append('<div class="tooltip-section"><em>[Table]</em></div>')
    html.append("</div>")
    return "".join(html)


def _shorten(text: str) -> str:
    return f"{text[:_DESCRIPTION_LIMIT]}..." if len(text) > _DESCRIPTION_LIMIT else text


# ----------------------------------------------------------------------
# Formatters
# ----------------------------------------------------------------------
def render_spell(data: Payload, tags: TagRenderer) -> str:
    level = data.get("level")
    level_text = "Cantrip" if level == 0 else f"{game_text.ordinal(level)}-level"
    school = f" {game_text.school_name(data['school'])}" if data.get("school") else ""
    ritual = " (ritual)" if _ritual(data) else ""
    html = [_open("spell", data), f'<div class="tooltip-metadata">{level_text}{escape_html(school)}{ritual}</div>']

    details: list[str] = []
    times = data.get("time")
    if isinstance(times, list) and times and isinstance(times[0], Mapping):
        first = times[0]
        details.append(f"<strong>Casting Time:</strong><span>{first.get('number') or 1} {escape_html(first.get('unit') or 'action')}</span>")
    if data.get("range"):
        details.append(f"<strong>Range:</strong><span>{escape_html(game_text.range_text(data['range']))}</span>")
    if data.get("components"):
        details.append(f"<strong>Components:</strong><span>{escape_html(game_text.components_text(data['components']))}</span>")
    durations = data.get("duration")
    if isinstance(durations, list) and durations:
        details.append(f"<strong>Duration:</strong><span>{escape_html(game_text.duration_text(durations[0]))}</span>")
    if details:
        html.append('<div class="tooltip-casting-details">' + "".join(details) + "</div>")

    html.append(render_entries(data.get("entries"), tags))
    if data.get("entriesHigherLevel"):
        html.append('<div class="tooltip-section">' + render_entries(data["entriesHigherLevel"], tags) + "</div>")
    html.append(_close(data))
    return "".join(html)


def _ritual(data: Payload) -> bool:
    meta = data.get("meta")
    return bool(data.get("ritual") or (isinstance(meta, Mapping) and meta.get("ritual")))


def render_item(data: Payload, tags: TagRenderer) -> str:
    html = [_open("item", data)]
    type_text = data.get("typeText") or ""
    if not type_text and data.get("type"):
        type_text = str(data["type"])
        if data.get("weaponCategory"):
            type_text = f"{data['weaponCategory']} weapon"
        if data.get("armor"):
            type_text = f"{data['type']} armor"
    if type_text:
        html.append(f'<div class="item-type">{escape_html(type_text)}</div>')

    rarity = data.get("rarity")
    if rarity and rarity not in ("none", "unknown"):
        rarity_class = "rarity-" + "-".join(str(rarity).lower().split())
        attune = " (requires attunement)" if data.get("reqAttune") else ""
        html.append(f'<div class="item-rarity {escape_html(rarity_class)}">{escape_html(rarity)}{attune}</div>')

    if data.get("weapon"):
        rows: list[str] = []
        if data.get("dmg1"):
            damage = str(data["dmg1"])
            if data.get("dmgType"):
                damage += f" {data['dmgType']}"
            if data.get("dmg2"):
                damage += f" ({data['dmg2']} versatile)"
            rows.append(_row("Damage", damage))
        if data.get("property"):
            rows.append(_row("Properties", ", ".join(str(prop) for prop in data["property"])))
        if data.get("range"):
            rows.append(_row("Range", data["range"]))
        html.append('<div class="tooltip-metadata">' + "".join(rows) + "</div>")

    if data.get("armor") or data.get("ac"):
        rows = []
        if data.get("ac"):
            rows.append(_row("AC", data["ac"]))
        if data.get("strength"):
            rows.append(_row("Strength Required", data["strength"]))
        if data.get("stealth"):
            rows.append("<strong>Stealth:</strong> Disadvantage<br>")
        html.append('<div class="tooltip-metadata">' + "".join(rows) + "</div>")

    if data.get("weight") or data.get("value"):
        parts: list[str] = []
        if data.get("weight"):
            parts.append(f"{data['weight']} lb.")
        if data.get("value"):
            parts.append(f"{_coins(data['value'])} gp")
        html.append('<div class="tooltip-properties">' + escape_html(", ".join(parts)) + "</div>")

    html.append(render_entries(data.get("entries"), tags))
    html.append(_close(data))
    return "".join(html)


def _coins(copper: Any) -> str:
    try:
        value = float(copper) / 100
    except (TypeError, ValueError):
        return str(copper)
    return f"{value:g}"


def render_race(data: Payload, tags: TagRenderer) -> str:
    rows: list[str] = []
    if data.get("size"):
        rows.append(_row("Size", game_text.size_name(data["size"])))
    if data.get("speed"):
        rows.append(_row("Speed", game_text.speed_text(data["speed"])))
    abilities = game_text.ability_increase_text(data.get("ability"))
    if abilities:
        rows.append(_row("Ability Score Increase", abilities))
    return "".join(
        [
            _open("race", data),
            '<div class="tooltip-metadata">' + "".join(rows) + "</div>",
            render_entries(data.get("entries"), tags),
            _close(data),
        ]
    )


def render_class(data: Payload, tags: TagRenderer) -> str:
    rows: list[str] = []
    hit_die = data.get("hd")
    if isinstance(hit_die, Mapping) and hit_die.get("faces"):
        rows.append(_row("Hit Die", f"d{hit_die['faces']}"))
    if data.get("spellcastingAbility"):
        rows.append(_row("Primary Ability", str(data["spellcastingAbility"]).upper()))
    if isinstance(data.get("proficiency"), list):
        rows.append(_row("Saving Throws", ", ".join(str(save).upper() for save in data["proficiency"])))
    html = [_open("class", data), '<div class="tooltip-metadata">' + "".join(rows) + "</div>"]

    starting = data.get("startingProficiencies")
    if isinstance(starting, Mapping):
        labels = [label for key, label in (("armor", "Armor"), ("weapons", "Weapons"), ("skills", "Skills")) if starting.get(key)]
        html.append('<div class="tooltip-section"><strong>Proficiencies:</strong> ' + ", ".join(labels) + "</div>")

    entries = data.get("entries")
    if isinstance(entries, list) and entries:
        first = entries[0]
        if isinstance(first, Mapping) and isinstance(first.get("entries"), list) and first["entries"]:
            first = first["entries"][0]
        if isinstance(first, str):
            html.append(f'<div class="tooltip-description">{tags.process_string(_shorten(first))}</div>')
    html.append(_close(data))
    return "".join(html)


def render_feat(data: Payload, tags: TagRenderer) -> str:
    rows = [_row("Prerequisite", game_text.format_prerequisite(data["prerequisite"]))] if data.get("prerequisite") else []
    return _open("feat", data) + _metadata(rows) + render_entries(data.get("entries"), tags) + _close(data)


def render_background(data: Payload, tags: TagRenderer) -> str:
    html = [_open("background", data)]
    proficiencies = data.get("skillProficiencies")
    if proficiencies:
        blocks = proficiencies if isinstance(proficiencies, list) else [proficiencies]
        skills = [
            str(skill)
            for block in blocks
            if isinstance(block, Mapping)
            for skill, value in block.items()
            if value is True
        ]
        html.append(f'<div class="tooltip-metadata"><strong>Skill Proficiencies:</strong> {escape_html(", ".join(skills))}<br></div>')
    html.append(render_entries(data.get("entries"), tags, max_entries=3))
    html.append(_close(data))
    return "".join(html)


def render_condition(data: Payload, tags: TagRenderer) -> str:
    return _open("condition", data) + render_entries(data.get("entries"), tags) + _close(data)


def render_skill(data: Payload, tags: TagRenderer) -> str:
    rows = [_row("Ability", str(data["ability"]).upper())] if data.get("ability") else []
    return _open("skill", data) + _metadata(rows) + render_entries(data.get("entries"), tags) + _close(data)


def render_action(data: Payload, tags: TagRenderer) -> str:
    rows: list[str] = []
    if isinstance(data.get("time"), list):
        times = [
            f"{entry.get('number') or 1} {entry.get('unit', '')}".strip() if isinstance(entry, Mapping) else str(entry)
            for entry in data["time"]
        ]
        rows.append(_row("Time", ", ".join(times)))
    return _open("action", data) + _metadata(rows) + render_entries(data.get("entries"), tags) + _close(data)


def render_optional_feature(data: Payload, tags: TagRenderer) -> str:
    html = [_open("optionalfeature", data)]
    if isinstance(data.get("featureType"), list):
        html.append(_metadata([_row("Type", ", ".join(str(kind) for kind in data["featureType"]))]))
    if data.get("prerequisite"):
        html.append(_metadata([_row("Prerequisite", game_text.format_prerequisite(data["prerequisite"]))]))
    html.append(render_entries(data.get("entries"), tags))
    html.append(_close(data))
    return "".join(html)


def render_reward(data: Payload, tags: TagRenderer) -> str:
    html = [_open("reward", data)]
    if data.get("type"):
        html.append(f'<div class="tooltip-metadata"><strong>Type:</strong> {escape_html(data["type"])}</div>')
    html.append(render_entries(data.get("entries"), tags))
    html.append(_close(data))
    return "".join(html)


def render_trap(data: Payload, tags: TagRenderer) -> str:
    rows: list[str] = []
    trap_type = data.get("trapHazType")
    if trap_type:
        rows.append(_row("Type", _TRAP_TYPES.get(trap_type, trap_type)))
    ratings = data.get("rating")
    if isinstance(ratings, list) and ratings and isinstance(ratings[0], Mapping):
        rating = ratings[0]
        rows.append(_row("Threat", f"{rating.get('threat') or ''} (Tier {rating.get('tier') or '?'})"))
    html = [_open("trap", data), '<div class="tooltip-metadata">' + "".join(rows) + "</div>"]
    if isinstance(data.get("trigger"), list):
        html.append('<div class="tooltip-section"><strong>Trigger:</strong> ')
        html.append(tags.process_string(" ".join(str(part) for part in data["trigger"])))
        html.append("</div>")
    html.append(render_entries(data.get("entries"), tags, max_entries=3))
    html.append(_close(data))
    return "".join(html)


def render_vehicle(data: Payload, tags: TagRenderer) -> str:
    rows = [_row(label, data[key]) for key, label in (("vehicleType", "Type"), ("size", "Size"), ("speed", "Speed")) if data.get(key)]
    return "".join(
        [
            _open("vehicle", data),
            '<div class="tooltip-metadata">' + "".join(rows) + "</div>",
            render_entries(data.get("entries"), tags, max_entries=3),
            _close(data),
        ]
    )


def render_creature(data: Payload, tags: TagRenderer) -> str:
    html = [_open("creature", data)]
    creature_type = data.get("type")
    if isinstance(creature_type, Mapping):
        creature_type = creature_type.get("type") or ""
    challenge = data.get("cr")
    if isinstance(challenge, list):
        challenge = challenge[0] if challenge else None
    if isinstance(challenge, Mapping):
        challenge = challenge.get("cr")
    meta = [str(creature_type or ""), game_text.size_name(data.get("size")), f"CR {challenge}" if challenge is not None else ""]
    meta = [part for part in meta if part]
    if meta:
        html.append(f'<div class="tooltip-metadata">{escape_html(" · ".join(meta))}</div>')

    rows: list[str] = []
    armor_class = data.get("ac")
    if armor_class:
        if isinstance(armor_class, list) and armor_class:
            first = armor_class[0]
            armor_class = first.get("ac", first) if isinstance(first, Mapping) else first
        rows.append(_row("AC", armor_class))
    hit_points = data.get("hp")
    if hit_points:
        if isinstance(hit_points, Mapping):
            hit_points = hit_points.get("average") or hit_points.get("formula") or ""
        rows.append(_row("HP", hit_points))
    if data.get("speed"):
        rows.append(_row("Speed", game_text.speed_text(data["speed"])))
    if rows:
        html.append('<div class="tooltip-metadata">' + "".join(rows) + "</div>")

    scores = [
        f"<span><strong>{code.upper()}:</strong> {escape_html(data[code])}</span>"
        for code in ("str", "dex", "con", "int", "wis", "cha")
        if data.get(code) is not None
    ]
    if scores:
        html.append('<div class="tooltip-abilities">' + "".join(scores) + "</div>")
    html.append(render_entries(data.get("entries"), tags, max_entries=3))
    html.append(_close(data))
    return "".join(html)


def render_table(data: Payload, tags: TagRenderer) -> str:
    html = [_open("table", data, fallback="Table")]
    headers = data.get("colLabels") if isinstance(data.get("colLabels"), list) else []
    rows = data.get("rows") if isinstance(data.get("rows"), list) else []
    if headers or rows:
        html.append('<div class="tooltip-table-wrapper"><table class="tooltip-table">')
        if headers:
            html.append("<thead><tr>" + "".join(f"<th>{tags.process_string(str(label))}</th>" for label in headers) + "</tr></thead>")
        if rows:
            html.append("<tbody>")
            for row in rows:
                html.append("<tr>" + "".join(f"<td>{_cell(cell, tags)}</td>" for cell in _cells(row)) + "</tr>")
            html.append("</tbody>")
        html.append("</table></div>")
    html.append(render_entries(data.get("entries"), tags, max_entries=3))
    html.append(_close(data))
    return "".join(html)


def _cells(row: Any) -> list[Any]:
    if isinstance(row, list):
        return row
    if isinstance(row, Mapping):
        for key in ("cells", "row"):
            if isinstance(row.get(key), list):
                return row[key]
    return []


def _cell(cell: Any, tags: TagRenderer) -> str:
    if isinstance(cell, str):
        return tags.process_string(cell)
    if isinstance(cell, Mapping):
        value = cell.get("entry") or cell.get("label") or cell.get("roll") or ""
        return tags.process_string(value) if isinstance(value, str) else escape_html(value)
    return escape_html(cell) if cell is not None else ""


def render_object(data: Payload, tags: TagRenderer) -> str:
    rows = [_row(label, data[key]) for key, label in (("size", "Size"), ("ac", "AC"), ("hp", "HP")) if data.get(key)]
    return "".join(
        [
            _open("object", data),
            '<div class="tooltip-metadata">' + "".join(rows) + "</div>",
            render_entries(data.get("entries"), tags, max_entries=3),
            _close(data),
        ]
    )


def render_variant_rule(data: Payload, tags: TagRenderer) -> str:
    html = [_open("variantrule", data)]
    rows: list[str] = []
    if data.get("ruleType"):
        rows.append(_row("Type", _RULE_TYPES.get(data["ruleType"], "Variant Rule")))
    if data.get("source"):
        page = f" (p. {escape_html(data['page'])})" if data.get("page") else ""
        rows.append(f"<strong>Source:</strong> {escape_html(data['source'])}{page}<br>")
    html.append(_metadata(rows))
    html.append(render_entries(data.get("entries"), tags, max_entries=10))
    html.append(_close(data))
    return "".join(html)


def render_generic(data: Payload, tags: TagRenderer | None = None) -> str:
    """Fallback body: title, source and one paragraph per string entry.

    Written to survive any payload shape, since it backs every other formatter.
    """

    if not isinstance(data, Mapping):
        return "<strong>Unknown</strong>"
    html = [f'<div class="tooltip-title">{escape_html(data.get("name") or "Unknown")}</div>']
    if data.get("source"):
        html.append(f'<div class="tooltip-source">{escape_html(data["source"])}</div>')
    entries = data.get("entries")
    if isinstance(entries, list):
        paragraphs = [
            f"<p>{tags.process_string(entry) if tags is not None else escape_html(entry)}</p>"
            for entry in entries
            if isinstance(entry, str)
        ]
        html.append('<div class="tooltip-entries">' + "".join(paragraphs) + "</div>")
    return "".join(html)


STAT_BLOCK_FORMATTERS: dict[str, StatBlockFormatter] = {
    "creature": render_creature,
    "monster": render_creature,
    "spell": render_spell,
    "item": render_item,
    "race": render_race,
    "class": render_class,
    "feat": render_feat,
    "feature": render_optional_feature,
    "optionalfeature": render_optional_feature,
    "background": render_background,
    "skill": render_skill,
    "action": render_action,
    "reward": render_reward,
    "trap": render_trap,
    "vehicle": render_vehicle,
    "object": render_object,
    "variantrule": render_variant_rule,
    "table": render_table,
    "condition": render_condition,
}
