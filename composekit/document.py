"""Mutable HTML document used as the injection target during a composition.

Parsing is permissive (lxml/libxml2 repairs what it can and drops what it cannot
place); the parser is configured for UTF-8 so no encoding declaration is ever
injected into, or serialized out of, the tree.
"""

from __future__ import annotations

import logging
import re
from typing import Literal, TypeAlias

import lxml.html
from lxml import etree
from lxml.html import HtmlElement

from .selectors import translate

logger = logging.getLogger(__name__)

MutateAction: TypeAlias = Literal["replace", "append", "prepend", "before", "after"]
ALLOWED_ACTIONS: tuple[str, ...] = ("replace", "append", "prepend", "before", "after")

EMPTY_DOCUMENT = "<!DOCTYPE html><html></html>"

_LEADING_DOCTYPE = re.compile(r"^\s*(<!DOCTYPE[^>]*>)", re.IGNORECASE)


def _parser() -> lxml.html.HTMLParser:
    return lxml.html.HTMLParser(encoding="utf-8", recover=True, default_doctype=False)


class Document:
    def __init__(self) -> None:
        self._root, self._doctype = self._parse_document(EMPTY_DOCUMENT)

    @classmethod
    def from_html(cls, html: str) -> "Document":
        doc = cls()
        doc.load(html)
        return doc

    @property
    def root(self) -> HtmlElement:
        return self._root

    def load(self, html: str) -> None:
        if not isinstance(html, str):
            raise TypeError(f"Document.load expects a string (type={type(html).__name__})")
        self._root, self._doctype = self._parse_document(html)

    def query(self, xpath: str) -> list[HtmlElement]:
        try:
            result = self._root.getroottree().xpath(xpath)
        except etree.XPathError as exc:
            logger.warning("Structural query matched nothing (invalid XPath %r: %s)", xpath, exc)
            return []
        if not isinstance(result, list):
            return []
        return [node for node in result if isinstance(node, HtmlElement)]

    def mutate(self, action: MutateAction, xpath: str, content: str) -> int:
        if action not in ALLOWED_ACTIONS:
            raise ValueError(f"Invalid document action: {action}")
        if not content:
            return 0

        counter = 0
        for node in self.query(xpath):
            if not self._is_attached(node):
                # Dropped together with an ancestor replaced earlier in this loop.
                continue
            if action == "replace" and node.getparent() is None:
                self._root, doctype = self._parse_document(content)
                self._doctype = doctype or self._doctype
                counter += 1
                continue
            if action in ("before", "after", "replace") and node.getparent() is None:
                continue

            lead, children = self._parse_fragment(content)
            if not lead and not children:
                continue
            if action == "prepend":
                self._insert_prepend(node, lead, children)
            elif action == "append":
                self._insert_append(node, lead, children)
            elif action == "before":
                self._insert_before(node, lead, children)
            elif action == "after":
                self._insert_after(node, lead, children)
            else:
                self._insert_before(node, lead, children)
                node.drop_tree()
            counter += 1

        return counter

    def remove(self, xpath: str) -> int:
        counter = 0
        for node in self.query(xpath):
            if node.getparent() is None or not self._is_attached(node):
                continue
            node.drop_tree()
            counter += 1
        return counter

    def serialize(self) -> str:
        return lxml.html.tostring(
            self._root,
            encoding="unicode",
            method="html",
            doctype=self._doctype,
        )

    # CSS-selector conveniences for units that work on the live document.

    def select(self, css_selector: str) -> list[HtmlElement]:
        return self.query(translate(css_selector))

    def prepend(self, css_selector: str, content: str) -> int:
        return self.mutate("prepend", translate(css_selector), content)

    def append(self, css_selector: str, content: str) -> int:
        return self.mutate("append", translate(css_selector), content)

    def before(self, css_selector: str, content: str) -> int:
        return self.mutate("before", translate(css_selector), content)

    def after(self, css_selector: str, content: str) -> int:
        return self.mutate("after", translate(css_selector), content)

    def replace(self, css_selector: str, content: str) -> int:
        return self.mutate("replace", translate(css_selector), content)

    def delete(self, css_selector: str) -> int:
        return self.remove(translate(css_selector))

    def _parse_document(self, html: str) -> tuple[HtmlElement, str | None]:
        if not html.strip():
            html = EMPTY_DOCUMENT
        try:
            root = lxml.html.document_fromstring(html.encode("utf-8"), parser=_parser())
        except etree.ParserError:
            # Comment-only or doctype-only input has no element to root the tree.
            match = _LEADING_DOCTYPE.match(html)
            root, doctype = self._parse_document(EMPTY_DOCUMENT)
            return root, (match.group(1) if match else doctype)
        doctype = root.getroottree().docinfo.doctype or None
        return root, doctype

    def _parse_fragment(self, content: str) -> tuple[str, list[HtmlElement]]:
        try:
            wrapper = lxml.html.fragment_fromstring(
                content.encode("utf-8"), create_parent="div", parser=_parser()
            )
        except etree.ParserError:
            return "", []
        return wrapper.text or "", list(wrapper)

    def _is_attached(self, node: HtmlElement) -> bool:
        if node is self._root:
            return True
        return any(ancestor is self._root for ancestor in node.iterancestors())

    def _insert_prepend(self, node: HtmlElement, lead: str, children: list[HtmlElement]) -> None:
        original_text = node.text or ""
        node.text = lead or None
        for index, child in enumerate(children):
            node.insert(index, child)
        if children:
            last = children[-1]
            last.tail = ((last.tail or "") + original_text) or None
        else:
            node.text = (lead + original_text) or None

    def _insert_append(self, node: HtmlElement, lead: str, children: list[HtmlElement]) -> None:
        if lead:
            if len(node):
                last = node[-1]
                last.tail = (last.tail or "") + lead
            else:
                node.text = (node.text or "") + lead
        node.extend(children)

    def _insert_before(self, node: HtmlElement, lead: str, children: list[HtmlElement]) -> None:
        parent = node.getparent()
        if lead:
            previous = node.getprevious()
            if previous is not None:
                previous.tail = (previous.tail or "") + lead
            else:
                parent.text = (parent.text or "") + lead
        index = parent.index(node)
        for offset, child in enumerate(children):
            parent.insert(index + offset, child)

    def _insert_after(self, node: HtmlElement, lead: str, children: list[HtmlElement]) -> None:
        parent = node.getparent()
        original_tail = node.tail or ""
        node.tail = lead or None
        index = parent.index(node)
        for offset, child in enumerate(children, start=1):
            parent.insert(index + offset, child)
        if children:
            last = children[-1]
            last.tail = ((last.tail or "") + original_tail) or None
        else:
            node.tail = (lead + original_tail) or None
