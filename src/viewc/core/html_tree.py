"""
Lightweight HTML tree for templates.

Templates are parsed with the standard library ``html.parser`` into a small
node tree. Unlike a browser DOM the tree keeps what the compiler needs to see
as written: tag and attribute case (``forEach``, ``<Counter>``), raw text with
its entities, comments, the doctype and self-closing markers. ``to_html``
serializes the tree back, which the slow renderer relies on.
"""

from __future__ import annotations

import copy
import html
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from html.parser import HTMLParser

VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    }
)

_RAW_TAG_RE = re.compile(r"<\s*([^\s/>]+)")
_RAW_ATTR_RE = re.compile(
    r"""([^\s/>"'=][^\s/>"'=]*)(\s*=\s*(?:'[^']*'|"[^"]*"|(?![\'"])[^>\s]*))?"""
)


@dataclass
class Text:
    """Raw text, entities left as written."""

    text: str

    @property
    def decoded(self) -> str:
        return html.unescape(self.text)

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()

    def to_html(self) -> str:
        return self.text


@dataclass
class Comment:
    text: str

    def to_html(self) -> str:
        return f"<!--{self.text}-->"


@dataclass
class Declaration:
    """``<!DOCTYPE ...>`` and other markup declarations."""

    text: str

    def to_html(self) -> str:
        return f"<!{self.text}>"


@dataclass
class Element:
    """
    An element with case-preserving tag and attribute names.

    Attribute lookups ignore case so that ``forEach`` and ``foreach`` are the
    same directive; the name as written is kept for rendering.
    """

    tag: str
    attrs: dict[str, str | None] = field(default_factory=dict)
    children: list[Node] = field(default_factory=list)
    self_closing: bool = False

    @property
    def tag_lower(self) -> str:
        return self.tag.lower()

    def _key(self, name: str) -> str | None:
        lowered = name.lower()
        return next((key for key in self.attrs if key.lower() == lowered), None)

    def has_attr(self, name: str) -> bool:
        return self._key(name) is not None

    def get_attr(self, name: str, default: str | None = None) -> str | None:
        key = self._key(name)
        if key is None:
            return default
        value = self.attrs[key]
        return "" if value is None else value

    def set_attr(self, name: str, value: str | None) -> None:
        key = self._key(name) or name
        self.attrs[key] = value

    def remove_attr(self, name: str) -> None:
        key = self._key(name)
        if key is not None:
            del self.attrs[key]

    @property
    def element_children(self) -> list[Element]:
        return [child for child in self.children if isinstance(child, Element)]

    def iter(self) -> Iterator[Element]:
        """This element and every descendant element, document order."""
        yield self
        for child in self.children:
            if isinstance(child, Element):
                yield from child.iter()

    def find_all(self, tag: str) -> list[Element]:
        """Descendants (not self) with the given tag, case-insensitive."""
        lowered = tag.lower()
        return [el for el in self.iter() if el is not self and el.tag_lower == lowered]

    def find(self, tag: str) -> Element | None:
        found = self.find_all(tag)
        return found[0] if found else None

    def text_content(self) -> str:
        parts: list[str] = []
        for child in self.children:
            if isinstance(child, Text):
                parts.append(child.decoded)
            elif isinstance(child, Element):
                parts.append(child.text_content())
        return "".join(parts)

    def clone(self) -> Element:
        return copy.deepcopy(self)

    def _render_attrs(self) -> str:
        rendered = []
        for name, value in self.attrs.items():
            if value is None:
                rendered.append(f" {name}")
            else:
                escaped = value.replace("&", "&amp;").replace('"', "&quot;")
                rendered.append(f' {name}="{escaped}"')
        return "".join(rendered)

    def to_html(self) -> str:
        if self.tag == _DOCUMENT:
            return "".join(child.to_html() for child in self.children)
        opening = f"<{self.tag}{self._render_attrs()}"
        if self.self_closing and not self.children:
            return opening + " />"
        if self.tag_lower in VOID_ELEMENTS and not self.children:
            return opening + ">"
        inner = "".join(child.to_html() for child in self.children)
        return f"{opening}>{inner}</{self.tag}>"


Node = Element | Text | Comment | Declaration

_DOCUMENT = "#document"


def _raw_names(start_tag_text: str) -> tuple[str, list[str]]:
    """Recover tag and attribute names with their original case."""
    tag_match = _RAW_TAG_RE.match(start_tag_text)
    tag = tag_match.group(1) if tag_match else ""
    rest = start_tag_text[tag_match.end() :] if tag_match else start_tag_text
    names = [m.group(1) for m in _RAW_ATTR_RE.finditer(rest.rstrip(">").rstrip("/"))]
    return tag, names


class _TreeBuilder(HTMLParser):
    """Build an ``Element`` tree from raw HTML."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=False)
        self.root = Element(tag=_DOCUMENT)
        self._stack: list[Element] = [self.root]

    def _make_element(
        self, tag: str, attrs: list[tuple[str, str | None]], self_closing: bool
    ) -> Element:
        raw_tag, raw_names = _raw_names(self.get_starttag_text() or "")
        by_lower = {name.lower(): name for name in raw_names}
        element_attrs = {by_lower.get(name, name): value for name, value in attrs}
        name = raw_tag if raw_tag.lower() == tag else tag
        return Element(tag=name, attrs=element_attrs, self_closing=self_closing)

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        element = self._make_element(tag, attrs, self_closing=False)
        self._stack[-1].children.append(element)
        if tag not in VOID_ELEMENTS:
            self._stack.append(element)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._stack[-1].children.append(self._make_element(tag, attrs, self_closing=True))

    def handle_endtag(self, tag: str) -> None:
        lowered = tag.lower()
        for index in range(len(self._stack) - 1, 0, -1):
            if self._stack[index].tag_lower == lowered:
                del self._stack[index:]
                return

    def handle_data(self, data: str) -> None:
        self._append_text(data)

    def handle_entityref(self, name: str) -> None:
        self._append_text(f"&{name};")

    def handle_charref(self, name: str) -> None:
        self._append_text(f"&#{name};")

    def handle_comment(self, data: str) -> None:
        self._stack[-1].children.append(Comment(data))

    def handle_decl(self, decl: str) -> None:
        self._stack[-1].children.append(Declaration(decl))

    def _append_text(self, data: str) -> None:
        children = self._stack[-1].children
        if children and isinstance(children[-1], Text):
            children[-1].text += data
        else:
            children.append(Text(data))


def parse_html(source: str) -> Element:
    """Parse an HTML document into a tree rooted at a ``#document`` element."""
    builder = _TreeBuilder()
    builder.feed(source)
    builder.close()
    return builder.root


def significant_children(element: Element) -> list[Node]:
    """
    Children that produce output: comments are dropped, and blank text is
    dropped whenever the element has more than one child.
    """
    children = [child for child in element.children if not isinstance(child, Comment)]
    if len(children) > 1:
        children = [
            child for child in children if not (isinstance(child, Text) and child.is_blank)
        ]
    return children
