from __future__ import annotations

"""CSS selector -> XPath 1.0 translation.

Only a small selector subset is supported: tag, `#id`, `.class`, `[attr]`,
`[attr=value]`, `[attr^=value]`, `[attr*=value]`, descendant (whitespace),
direct child (`>`), adjacent sibling (`+`) and `:first-child`. Anything prefixed
with `xpath:` is passed through untouched.

The rewrites are purely textual and run in a fixed order; later rules rely on the
shape produced by earlier ones (attribute brackets are rewritten before the
prefix/substring rules that look inside them). Malformed selectors are not
rejected here; they produce a query that matches nothing.
"""

import re
from typing import Callable

XPATH_PREFIX = "xpath:"

_LITERAL = re.compile(r"\"[^\"]*\"|'[^']*'")
_PLACEHOLDER = re.compile(r"\x00(\d+)\x00")

_DESCENDANT = re.compile(r"([\w\-\]\*)])\s+(?=[\w\-#.\[*:])")
_CHILD = re.compile(r"\s*>\s*")
_ATTRIBUTE = re.compile(r"\[([^\]]+)\]")
_BARE_PREDICATE = re.compile(r"(^|/)\[@")
_STARTS_WITH = re.compile(r"\[@([^\]\^=]+?)\s*\^=\s*([^\]]+)\]")
_CONTAINS = re.compile(r"\[@([^\]\*=]+?)\s*\*=\s*([^\]]+)\]")
_EQUALS = re.compile(r"\[@([\w\-:]+)\s*=\s*([^\]\x00\s][^\]]*)\]")
_ID = re.compile(r"#([\w\-]+)")
_CLASS = re.compile(r"\.([\w\-]+)")
_TAG_WILDCARD = re.compile(r"([\w\-]+)\*")
_FIRST_CHILD = re.compile(r":first-child")
_ADJACENT = re.compile(r"\s*\+\s*")


def translate(selector: str) -> str:
    """Translate a CSS selector into an XPath query rooted at any depth."""

    if selector.startswith(XPATH_PREFIX):
        return selector[len(XPATH_PREFIX) :]

    literals: list[str] = []

    def stash(text: str) -> str:
        literals.append(text)
        return f"\x00{len(literals) - 1}\x00"

    def quoted(raw: str) -> str:
        value = raw.strip()
        if _PLACEHOLDER.fullmatch(value):
            return value
        return stash(_quote(value))

    def predicate(fn: str) -> Callable[[re.Match[str]], str]:
        def _replace(match: re.Match[str]) -> str:
            return f"[{fn}(@{match.group(1).strip()}, {quoted(match.group(2))})]"

        return _replace

    xpath = _LITERAL.sub(lambda m: stash(m.group(0)), selector.strip())

    xpath = _DESCENDANT.sub(r"\1//", xpath)
    xpath = _CHILD.sub("/", xpath)
    xpath = _ATTRIBUTE.sub(r"[@\1]", xpath)
    xpath = _BARE_PREDICATE.sub(r"\1*[@", xpath)
    xpath = _STARTS_WITH.sub(predicate("starts-with"), xpath)
    xpath = _CONTAINS.sub(predicate("contains"), xpath)
    xpath = _EQUALS.sub(lambda m: f"[@{m.group(1)}={quoted(m.group(2))}]", xpath)
    xpath = _ID.sub(r'*[@id="\1"]', xpath)
    xpath = _CLASS.sub(r'*[contains(concat(" ", @class, " "), " \1 ")]', xpath)
    xpath = _TAG_WILDCARD.sub(r"\1", xpath)
    xpath = _FIRST_CHILD.sub("[1]", xpath)
    xpath = _ADJACENT.sub("/following-sibling::*[1]/self::", xpath)

    xpath = _PLACEHOLDER.sub(lambda m: literals[int(m.group(1))], xpath)
    return "//" + xpath


def _quote(value: str) -> str:
    # XPath 1.0 has no escape syntax; pick whichever quote the value lacks.
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    parts = value.split('"')
    return "concat(" + ", '\"', ".join(f'"{part}"' for part in parts) + ")"
