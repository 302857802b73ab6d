from __future__ import annotations

"""Map request paths to main unit ids."""

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable

from composekit.errors import ConfigurationError

Fallback = Callable[[str], str]


@dataclass(frozen=True)
class RouteResult:
    unit_id: str
    parameters: dict[str, str] = field(default_factory=dict)


class Router:
    """First matching route wins; its unit-id template may reference match groups."""

    def __init__(self, routes: Iterable[tuple[str, str]], fallback: str | Fallback) -> None:
        self._routes: list[tuple[re.Pattern[str], str]] = []
        for pattern, template in routes:
            try:
                self._routes.append((re.compile(pattern), template))
            except re.error as exc:
                raise ConfigurationError(f"Invalid route pattern {pattern!r}: {exc}") from exc
        if not callable(fallback) and (not isinstance(fallback, str) or not fallback.strip()):
            raise TypeError("Router fallback must be a unit id or a callable")
        self._fallback = fallback

    def parse(self, path: str) -> RouteResult:
        normalized = path.strip("/")
        for pattern, template in self._routes:
            match = pattern.search(normalized)
            if match is None:
                continue
            parameters = {str(idx): value for idx, value in enumerate(match.groups(), start=1) if value is not None}
            parameters.update({name: value for name, value in match.groupdict().items() if value is not None})
            return RouteResult(unit_id=match.expand(template), parameters=parameters)

        if callable(self._fallback):
            unit_id = self._fallback(normalized)
        else:
            unit_id = self._fallback.strip()
        return RouteResult(unit_id=unit_id)
