from __future__ import annotations

"""Minimal mediator-style event bus.

Listeners receive `(event_name, data)`. A listener returning a non-None value
replaces the data passed to the next listener, which turns an event into a hook;
returning None leaves the data untouched.
"""

from collections import defaultdict
from typing import Any, Callable, Iterable, TypeAlias

Listener: TypeAlias = Callable[[str, Any], Any]

AFTER_OUTPUT = "compose.after_output"


def _normalize(event: str) -> str:
    if not isinstance(event, str) or not event.strip():
        raise ValueError("Event name must be a non-empty string")
    return event.strip().lower()


class EventBus:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def on(self, events: str | Iterable[str], callback: Listener) -> None:
        if not callable(callback):
            raise TypeError(f"Event listener must be callable (type={type(callback).__name__})")
        names = [events] if isinstance(events, str) else list(events)
        for name in names:
            self._listeners[_normalize(name)].append(callback)

    def trigger(self, event: str, data: Any = None) -> Any:
        name = _normalize(event)
        for callback in list(self._listeners.get(name, ())):
            result = callback(name, data)
            if result is not None:
                data = result
        return data

    def listeners(self) -> dict[str, tuple[Listener, ...]]:
        return {name: tuple(callbacks) for name, callbacks in self._listeners.items() if callbacks}
