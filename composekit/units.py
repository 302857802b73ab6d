from __future__ import annotations

"""Unit invocation and output classification.

A unit is a plain callable taking a `UnitContext`. Its return value is classified
exactly once, here, into the `Html | Raw | Empty` union the composer merges.
"""

import difflib
import io
import logging
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Literal, Protocol, TypeAlias

from composekit.config_store import ConfigStore, deep_merge
from composekit.errors import ConfigurationError
from composekit.views import RenderableView

if TYPE_CHECKING:
    from composekit.document import Document
    from composekit.events import EventBus
    from composekit.queue import ModuleQueue, QueueEntry

RawKind: TypeAlias = Literal["string", "stream"]


@dataclass(frozen=True)
class Html:
    content: str
    kind: Literal["html"] = "html"


@dataclass(frozen=True)
class Raw:
    content: bytes
    kind: RawKind = "string"


@dataclass(frozen=True)
class Empty:
    kind: Literal["empty"] = "empty"


EMPTY = Empty()

UnitOutput: TypeAlias = Html | Raw | Empty


@dataclass
class UnitContext:
    unit_id: str
    entry: "QueueEntry"
    path: str
    queue: "ModuleQueue"
    document: "Document | None"
    config: ConfigStore
    events: "EventBus"
    logger: logging.Logger

    @property
    def unit_config(self) -> dict[str, Any]:
        return self.config.namespace(self.unit_id)

    def unit_key(self, key: str) -> str:
        """Dotted store path of `key` inside this unit's namespace."""
        return f"{self.config.namespace_path(self.unit_id)}.{key}"


class UnitFn(Protocol):
    def __call__(self, ctx: UnitContext) -> Any:
        ...


@dataclass(frozen=True)
class UnitRef:
    id: str
    fn: UnitFn
    doc: str | None = None
    defaults: Mapping[str, Any] = field(default_factory=dict)
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise TypeError("UnitRef.id must be a non-empty string")
        object.__setattr__(self, "id", self.id.strip())

        if not callable(self.fn):
            raise TypeError(f"UnitRef.fn must be callable (unit={self.id}, type={type(self.fn).__name__})")
        if self.doc is not None and (not isinstance(self.doc, str) or not self.doc.strip()):
            raise TypeError("UnitRef.doc must be a non-empty string or None")
        if not isinstance(self.defaults, Mapping):
            raise TypeError(f"UnitRef.defaults must be a mapping (unit={self.id})")
        object.__setattr__(self, "defaults", dict(self.defaults))
        if self.tags:
            object.__setattr__(
                self, "tags", tuple(str(tag).strip() for tag in self.tags if str(tag).strip())
            )

    @property
    def source(self) -> str:
        module = getattr(self.fn, "__module__", None) or "<unknown_module>"
        qualname = getattr(self.fn, "__qualname__", None) or getattr(self.fn, "__name__", None)
        return f"{module}.{qualname or '<callable>'}"


@dataclass(frozen=True)
class UnitRegistry:
    _by_id: dict[str, UnitRef]

    @classmethod
    def from_refs(cls, refs: Iterable[UnitRef]) -> "UnitRegistry":
        entries: dict[str, UnitRef] = {}
        for ref in refs:
            if ref.id in entries:
                raise ValueError(f"Duplicate unit id: {ref.id}")
            entries[ref.id] = ref
        return cls(_by_id=entries)

    @classmethod
    def from_callables(cls, units: Mapping[str, UnitFn]) -> "UnitRegistry":
        return cls.from_refs(UnitRef(id=unit_id, fn=fn) for unit_id, fn in units.items())

    def available(self) -> tuple[str, ...]:
        return tuple(sorted(self._by_id.keys()))

    def describe(self) -> tuple[dict[str, Any], ...]:
        return tuple(
            {
                "unit_id": ref.id,
                "doc": ref.doc,
                "source": ref.source,
                "tags": list(ref.tags),
                "defaults": dict(ref.defaults),
            }
            for ref in sorted(self._by_id.values(), key=lambda r: r.id)
        )

    def get(self, unit_id: str) -> UnitRef | None:
        return self._by_id.get((unit_id or "").strip())

    def resolve(self, unit_id: str) -> UnitRef:
        key = (unit_id or "").strip() if isinstance(unit_id, str) else ""
        if not key:
            raise ConfigurationError("unit_id must be a non-empty string")

        ref = self._by_id.get(key)
        if ref is not None:
            return ref

        suggestions = self.suggest(key)
        hint = f" (did you mean: {', '.join(suggestions)})" if suggestions else ""
        available = ", ".join(self.available()) or "<none>"
        raise ConfigurationError(f"Unknown unit id: {unit_id}{hint} (available: {available})")

    def suggest(self, unit_id: str, *, limit: int = 3) -> tuple[str, ...]:
        key = (unit_id or "").strip()
        available = self.available()
        if not key or not available:
            return ()

        suffix_to_full: dict[str, list[str]] = defaultdict(list)
        for full in available:
            suffix_to_full[full.rsplit(".", 1)[-1]].append(full)

        expanded: list[str] = []
        for suggestion in difflib.get_close_matches(key, list(suffix_to_full.keys()), n=limit):
            expanded.extend(suffix_to_full[suggestion])
        if expanded:
            return tuple(expanded[:limit])
        return tuple(difflib.get_close_matches(key, list(available), n=limit))

    def invoke(self, unit_id: str, ctx: UnitContext) -> Any:
        return self.resolve(unit_id).fn(ctx)


def _read_stream(handle: io.IOBase) -> bytes:
    if handle.seekable():
        handle.seek(0)
    data = handle.read()
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data or b"")


def classify_output(unit_id: str, value: Any) -> UnitOutput:
    """Normalize a unit's return value into `Html`, `Raw` or `Empty`."""

    if value is None:
        return EMPTY
    if isinstance(value, io.IOBase):
        return Raw(content=_read_stream(value), kind="stream")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Raw(content=bytes(value), kind="stream")
    if isinstance(value, RenderableView):
        value.init(unit_id)
        output = value.get_output()
        if isinstance(output, io.IOBase):
            output = _read_stream(output)
        if value.is_returning_html:
            if isinstance(output, (bytes, bytearray)):
                output = bytes(output).decode("utf-8")
            if not isinstance(output, str):
                raise ConfigurationError(
                    f"Unit {unit_id} view {type(value).__name__} produced non-text HTML "
                    f"(type={type(output).__name__})"
                )
            return Html(content=output)
        if isinstance(output, str):
            return Raw(content=output.encode("utf-8"), kind="string")
        if isinstance(output, (bytes, bytearray)):
            return Raw(content=bytes(output), kind="stream")
        raise ConfigurationError(
            f"Unit {unit_id} view {type(value).__name__} produced unsupported output "
            f"(type={type(output).__name__})"
        )
    if isinstance(value, str):
        return Raw(content=value.encode("utf-8"), kind="string")

    raise ConfigurationError(
        f"Unit {unit_id} returned unsupported type {type(value).__name__}; "
        "expected a stream, bytes, a string, a RenderableView or None"
    )


class UnitRunner:
    def __init__(self, registry: UnitRegistry, config: ConfigStore) -> None:
        self._registry = registry
        self._config = config

    @property
    def registry(self) -> UnitRegistry:
        return self._registry

    def cascade_config(self, entry: "QueueEntry") -> None:
        ref = self._registry.resolve(entry.unit_id)
        # Unit defaults only fill gaps; values already in the store and entry overrides win.
        try:
            base = deep_merge(dict(ref.defaults), self._config.namespace(entry.unit_id), path=entry.unit_id)
            overrides = deep_merge(base, dict(entry.config), path=entry.unit_id)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid config for unit {entry.unit_id}: {exc}") from exc
        self._config.merge_namespace(entry.unit_id, overrides or {})

    def run(self, entry: "QueueEntry", ctx: UnitContext) -> UnitOutput:
        ref = self._registry.resolve(entry.unit_id)
        self.cascade_config(entry)
        return classify_output(ref.id, ref.fn(ctx))
