"""Renderable views a unit may return instead of a bare string or stream."""

from __future__ import annotations

import csv
import io
import json
import re
from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence

_JSONP_CALLBACK = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


class RenderableView(ABC):
    """Base class for unit views.

    `is_returning_html` decides how the composer merges the output: HTML views are
    injected into the document, everything else occupies the single raw slot.
    """

    is_returning_html: bool = False
    content_type: str = "text/plain"

    def __init__(self) -> None:
        self._content: dict[str, Any] = {}
        self.unit_id: str | None = None

    def init(self, unit_id: str) -> None:
        self.unit_id = unit_id

    def set_content(self, key: str, value: Any, *, overwrite: bool = False) -> None:
        if key in self._content and not overwrite:
            raise ValueError(f"{type(self).__name__}: content key {key!r} is already set")
        self._content[key] = value

    @property
    def content(self) -> dict[str, Any]:
        return dict(self._content)

    @abstractmethod
    def get_output(self) -> str | bytes:
        ...


class HtmlView(RenderableView):
    is_returning_html = True
    content_type = "text/html"

    def __init__(self, html: str = "") -> None:
        super().__init__()
        self.set_content("html", html)

    def get_output(self) -> str:
        html = self._content.get("html")
        if not isinstance(html, str):
            raise TypeError(f"HtmlView content must be a string (type={type(html).__name__})")
        return html


class TextView(RenderableView):
    def __init__(self, text: str = "") -> None:
        super().__init__()
        self.set_content("text", text)

    def get_output(self) -> str:
        return str(self._content.get("text", ""))


class JsonView(RenderableView):
    content_type = "application/json"

    def __init__(self, data: Any = None, *, callback: str | None = None) -> None:
        super().__init__()
        if callback is not None and not _JSONP_CALLBACK.match(callback):
            raise ValueError(f"Invalid JSONP callback name: {callback!r}")
        self.callback = callback
        if data is not None:
            self.set_content("content", data)

    def get_output(self) -> str:
        payload = json.dumps(self._content.get("content"), ensure_ascii=False)
        if self.callback:
            return f"{self.callback}({payload});"
        return payload


class CsvView(RenderableView):
    content_type = "text/csv"

    def __init__(
        self,
        rows: Iterable[Sequence[Any]] = (),
        *,
        header: Sequence[str] | None = None,
        delimiter: str = ",",
    ) -> None:
        super().__init__()
        self.header = tuple(header) if header else None
        self.delimiter = delimiter
        self.set_content("rows", [list(row) for row in rows])

    def get_output(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=self.delimiter, lineterminator="\n")
        if self.header:
            writer.writerow(self.header)
        writer.writerows(self._content.get("rows", []))
        return buffer.getvalue()
