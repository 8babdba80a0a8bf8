"""BeautifulSoup-backed element tree shared by the batch processor and tooltips.

Tags compare structurally in bs4 (two ``<p>`` elements with the same text are
``==``), so everything here tracks elements by identity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator

from bs4 import BeautifulSoup, NavigableString, PageElement, Tag

from ..markup.tokens import HOVER_LINK_CLASS, LEGACY_LINK_CLASS

__all__ = [
    "ContentDocument",
    "Observation",
    "add_class",
    "closest",
    "has_class",
    "inner_html",
    "is_within",
    "iter_ancestors",
    "matches",
    "remove_class",
    "upgrade_legacy_links",
]

LOGGER = logging.getLogger(__name__)

_PARSER = "html.parser"
MutationCallback = Callable[[list[Tag]], None]


# ----------------------------------------------------------------------
# Element helpers
# ----------------------------------------------------------------------
def as_tag(node: PageElement | None) -> Tag | None:
    """Return *node* itself when it is a Tag, else its parent element."""

    if node is None:
        return None
    if isinstance(node, Tag):
        return node
    parent = node.parent
    return parent if isinstance(parent, Tag) else None


def iter_ancestors(tag: Tag | None, *, include_self: bool = True) -> Iterator[Tag]:
    node = tag if include_self else (tag.parent if tag is not None else None)
    while isinstance(node, Tag) and not isinstance(node, BeautifulSoup):
        yield node
        node = node.parent


def is_within(tag: PageElement | None, ancestor: Tag | None) -> bool:
    """Identity-based containment test, inclusive of *ancestor* itself."""

    if tag is None or ancestor is None:
        return False
    node: PageElement | None = tag
    while node is not None:
        if node is ancestor:
            return True
        node = node.parent
    return False


def matches(tag: PageElement | None, selector: str) -> bool:
    if not isinstance(tag, Tag) or isinstance(tag, BeautifulSoup):
        return False
    return bool(tag.css.match(selector))


def closest(tag: PageElement | None, selector: str) -> Tag | None:
    """Nearest element (self included) matching *selector*."""

    element = as_tag(tag)
    if element is None or isinstance(element, BeautifulSoup):
        return None
    return element.css.closest(selector)


def has_class(tag: Tag, name: str) -> bool:
    return name in (tag.get("class") or [])


def add_class(tag: Tag, name: str) -> None:
    classes = list(tag.get("class") or [])
    if name not in classes:
        classes.append(name)
        tag["class"] = classes


def remove_class(tag: Tag, name: str) -> None:
    classes = [value for value in (tag.get("class") or []) if value != name]
    if classes:
        tag["class"] = classes
    elif tag.has_attr("class"):
        del tag["class"]


def inner_html(tag: Tag) -> str:
    return tag.decode_contents()


def upgrade_legacy_links(root: Tag) -> list[Tag]:
    """Give ``.reference-link`` elements the hover marker and hover attributes."""

    upgraded: list[Tag] = []
    for link in root.select(f".{LEGACY_LINK_CLASS}"):
        add_class(link, HOVER_LINK_CLASS)
        for suffix in ("type", "name", "source"):
            legacy = f"data-tooltip-{suffix}"
            modern = f"data-hover-{suffix}"
            if not link.has_attr(modern) and link.has_attr(legacy):
                link[modern] = link[legacy]
        upgraded.append(link)
    if upgraded:
        LOGGER.debug("Upgraded %d legacy reference link(s)", len(upgraded))
    return upgraded


# ----------------------------------------------------------------------
# Document
# ----------------------------------------------------------------------
@dataclass(slots=True, eq=False)
class Observation:
    """A registered mutation observer; ``disconnect`` stops notifications."""

    root: Tag
    callback: MutationCallback
    _document: ContentDocument | None = field(default=None, repr=False)

    def disconnect(self) -> None:
        if self._document is not None:
            self._document._detach(self)
            self._document = None


class ContentDocument:
    """Headless page tree with insertion observers.

    Insertions made through :meth:`append`, :meth:`insert_before` and
    :meth:`set_inner_html` notify observers whose root contains the new
    elements, mirroring a DOM ``MutationObserver`` watching ``childList``
    with ``subtree`` enabled.
    """

    def __init__(self, html: str = "") -> None:
        self.soup = BeautifulSoup(html or "", _PARSER)
        if self.soup.body is None:
            body = self.soup.new_tag("body")
            for child in list(self.soup.contents):
                body.append(child.extract())
            self.soup.append(body)
        self._observations: list[Observation] = []

    @property
    def body(self) -> Tag:
        assert self.soup.body is not None
        return self.soup.body

    def select(self, selector: str, root: Tag | None = None) -> list[Tag]:
        return list((root or self.body).select(selector))

    def select_one(self, selector: str, root: Tag | None = None) -> Tag | None:
        return (root or self.body).select_one(selector)

    def new_tag(self, name: str, **attrs: str) -> Tag:
        tag = self.soup.new_tag(name)
        for key, value in attrs.items():
            tag[key.rstrip("_").replace("_", "-")] = value
        return tag

    def fragment(self, html: str) -> list[PageElement]:
        parsed = BeautifulSoup(html or "", _PARSER)
        return [node.extract() for node in list(parsed.contents)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def append(self, parent: Tag, content: str | PageElement | Iterable[PageElement], *, notify: bool = True) -> list[Tag]:
        """Append *content* to *parent* and return the inserted elements."""

        nodes = self._coerce(content)
        for node in nodes:
            parent.append(node)
        return self._inserted(nodes, notify)

    def insert_before(self, reference: Tag, content: str | PageElement, *, notify: bool = True) -> list[Tag]:
        nodes = self._coerce(content)
        for node in nodes:
            reference.insert_before(node)
        return self._inserted(nodes, notify)

    def set_inner_html(self, tag: Tag, html: str, *, notify: bool = True) -> list[Tag]:
        tag.clear()
        return self.append(tag, html, notify=notify)

    def remove(self, tag: PageElement) -> None:
        tag.extract()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def observe(self, root: Tag, callback: MutationCallback) -> Observation:
        observation = Observation(root=root, callback=callback, _document=self)
        self._observations.append(observation)
        return observation

    def _detach(self, observation: Observation) -> None:
        self._observations = [item for item in self._observations if item is not observation]

    def _coerce(self, content: str | PageElement | Iterable[PageElement]) -> list[PageElement]:
        if isinstance(content, str) and not isinstance(content, NavigableString):
            return self.fragment(content)
        if isinstance(content, PageElement):
            return [content]
        return list(content)

    def _inserted(self, nodes: list[PageElement], notify: bool) -> list[Tag]:
        elements = [node for node in nodes if isinstance(node, Tag)]
        if notify and elements:
            for observation in list(self._observations):
                inside = [element for element in elements if is_within(element, observation.root)]
                if not inside:
                    continue
                try:
                    observation.callback(inside)
                except Exception:
                    LOGGER.exception("Mutation observer callback failed")
        return elements
