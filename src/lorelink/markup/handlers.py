"""Built-in tag handlers: entity references plus inline formatting kinds."""

from __future__ import annotations

from typing import Callable

from .renderer import TagHandler, TagRenderer
from .tokens import DEFAULT_SOURCE, HOVER_LINK_CLASS, escape_html, split_fields

__all__ = [
    "REFERENCE_KINDS",
    "SPAN_KINDS",
    "register_default_handlers",
    "reference_anchor",
]

REFERENCE_KINDS: tuple[str, ...] = (
    "class",
    "race",
    "background",
    "feat",
    "feature",
    "optfeature",
    "spell",
    "item",
    "condition",
    "skill",
    "action",
    "creature",
    "variantrule",
    "trap",
    "hazard",
    "vehicle",
    "object",
    "deity",
    "reward",
    "table",
    "card",
    "deck",
)

# kind -> css class of a span wrapping the escaped first field
SPAN_KINDS: dict[str, str] = {
    "damage": "rd__damage-type",
    "quickref": "rd__quickref",
    "itemProperty": "rd__item-property",
    "sense": "rd__sense",
    "atk": "rd__atk",
    "ability": "rd__ability",
    "area": "rd__area",
    "scaledice": "rd__scaledice",
    "scaledamage": "rd__scaledamage",
    "d20": "rd__d20",
    "hit": "rd__hit-bonus",
    "filter": "rd__filter",
    "status": "rd__status",
    "language": "rd__language",
}

_LABELS: dict[str, tuple[str, str]] = {
    "h": ("rd__hit", "Hit:"),
    "m": ("rd__miss", "Miss:"),
    "hom": ("rd__hit-or-miss", "Hit or Miss:"),
}


def reference_anchor(kind: str, name: str, source: str) -> str:
    """Build the interactive anchor markup for an entity reference."""

    safe_name = escape_html(name)
    safe_source = escape_html(source)
    return (
        f'<a class="rd__{kind}-link {HOVER_LINK_CLASS}" data-hover-type="{kind}" '
        f'data-hover-name="{safe_name}" data-hover-source="{safe_source}">{safe_name}</a>'
    )


def _reference_handler(kind: str, default_source: str) -> TagHandler:
    def handler(raw_args: str) -> str:
        fields = split_fields(raw_args)
        source = fields[1] if len(fields) > 1 and fields[1] else default_source
        return reference_anchor(kind, fields[0], source)

    return handler


def _span_handler(css_class: str, template: str = "{value}") -> TagHandler:
    def handler(raw_args: str) -> str:
        value = escape_html(split_fields(raw_args)[0])
        return f'<span class="{css_class}">{template.format(value=value)}</span>'

    return handler


def _wrap_handler(element: str) -> TagHandler:
    def handler(raw_args: str) -> str:
        return f"<{element}>{escape_html(raw_args)}</{element}>"

    return handler


def _label_handler(css_class: str, label: str) -> TagHandler:
    def handler(_raw_args: str) -> str:
        return f'<span class="{css_class}"><em>{label}</em> </span>'

    return handler


def _note(raw_args: str) -> str:
    return f'<span class="rd__note">{escape_html(raw_args)}</span>'


def _dice(raw_args: str) -> str:
    notation = escape_html(split_fields(raw_args)[0])
    return f'<span class="rd__dice" data-roll="{notation}">{notation}</span>'


def _book(raw_args: str) -> str:
    fields = split_fields(raw_args)
    code = fields[1] if len(fields) > 1 and fields[1] else fields[0]
    return f'<span class="rd__book-ref" data-book="{escape_html(code)}">{escape_html(fields[0])}</span>'


def _adventure_handler(default_source: str) -> TagHandler:
    def handler(raw_args: str) -> str:
        fields = split_fields(raw_args)
        source = fields[1] if len(fields) > 1 and fields[1] else default_source
        return f'<a class="rd__adventure-link" data-adventure="{escape_html(source)}">{escape_html(fields[0])}</a>'

    return handler


def _external_link(label: str, url: str) -> str:
    return (
        f'<a class="rd__link" href="{escape_html(url)}" target="_blank" '
        f'rel="noopener noreferrer">{escape_html(label)}</a>'
    )


def _link(raw_args: str) -> str:
    fields = split_fields(raw_args)
    url = fields[1] if len(fields) > 1 and fields[1] else "#"
    return _external_link(fields[0], url)


def _site_link(raw_args: str) -> str:
    fields = split_fields(raw_args or "5etools|https://5e.tools")
    label = fields[0] or "5etools"
    url = fields[1] if len(fields) > 1 and fields[1] else "https://5e.tools"
    return _external_link(label, url)


def _coinflip(_raw_args: str) -> str:
    return '<span class="rd__coinflip">flip a coin</span>'


def register_default_handlers(renderer: TagRenderer, *, default_source: str = DEFAULT_SOURCE) -> TagRenderer:
    """Install every built-in tag kind on *renderer* and return it."""

    for kind in REFERENCE_KINDS:
        renderer.register_handler(kind, _reference_handler(kind, default_source), reference=True)

    formatting: dict[str, Callable[[str], str]] = {
        "note": _note,
        "bold": _wrap_handler("strong"),
        "b": _wrap_handler("strong"),
        "italic": _wrap_handler("em"),
        "i": _wrap_handler("em"),
        "dice": _dice,
        "dc": _span_handler("rd__dc", "DC {value}"),
        "recharge": _span_handler("rd__recharge", "(Recharge {value})"),
        "chance": _span_handler("rd__chance", "{value}%"),
        "book": _book,
        "adventure": _adventure_handler(default_source),
        "coinflip": _coinflip,
        "link": _link,
        "5etools": _site_link,
    }
    for kind, css_class in SPAN_KINDS.items():
        formatting[kind] = _span_handler(css_class)
    for kind, (css_class, label) in _LABELS.items():
        formatting[kind] = _label_handler(css_class, label)

    for kind, handler in formatting.items():
        renderer.register_handler(kind, handler)
    return renderer
