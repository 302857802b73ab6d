from __future__ import annotations

from pagecomposer.units.snippet import UNIT as SNIPPET
from pagecomposer.units.static_page import UNIT as STATIC_PAGE
from pagecomposer.units.suppress import UNIT as SUPPRESS
from pagecomposer.units.text import UNIT as TEXT

__all_units__ = [
    STATIC_PAGE,
    SNIPPET,
    TEXT,
    SUPPRESS,
]
