"""Process-wide configuration store with per-unit namespaces."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

_MISSING = object()

UNIT_NAMESPACE_ROOT = "modules"


def deep_merge(base: Any, overlay: Any, *, path: str) -> Any:
    if overlay is None:
        return None
    if base is None:
        return overlay
    if isinstance(base, Mapping):
        if not isinstance(overlay, Mapping):
            raise ValueError(
                f"Invalid config merge at {path}: base is mapping but overlay is {type(overlay).__name__}"
            )
        merged: dict[str, Any] = dict(base)
        for key, overlay_value in overlay.items():
            next_path = f"{path}.{key}" if path else str(key)
            if key in base:
                merged[key] = deep_merge(base[key], overlay_value, path=next_path)
            else:
                merged[key] = overlay_value
        return merged
    if isinstance(base, (list, tuple)):
        if not isinstance(overlay, (list, tuple)):
            raise ValueError(
                f"Invalid config merge at {path}: base is list but overlay is {type(overlay).__name__}"
            )
        return list(overlay)
    if isinstance(overlay, (Mapping, list, tuple)):
        raise ValueError(
            f"Invalid config merge at {path}: base is {type(base).__name__} but overlay is {type(overlay).__name__}"
        )
    return overlay


class ConfigStore:
    """Shared key/value store; unit namespaces live under `modules.<unit_id>`.

    Namespace merges are append-only: later merges overlay earlier ones and are never
    rolled back, so units observe whatever units before them merged.
    """

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        if data is not None and not isinstance(data, Mapping):
            raise TypeError(f"ConfigStore data must be a mapping (type={type(data).__name__})")
        self._data: dict[str, Any] = dict(data or {})

    def get(self, path: str, default: Any = _MISSING) -> Any:
        node: Any = self._data
        for key in _split_path(path):
            if not isinstance(node, Mapping) or key not in node:
                if default is _MISSING:
                    raise KeyError(f"Missing config key: {path}")
                return default
            node = node[key]
        return node

    def set(self, path: str, value: Any) -> None:
        keys = _split_path(path)
        node = self._data
        for index, key in enumerate(keys[:-1]):
            child = node.get(key)
            if child is None:
                child = {}
            elif not isinstance(child, Mapping):
                raise ValueError(
                    f"Cannot set {path}: {'.'.join(keys[: index + 1])} is {type(child).__name__}, not a mapping"
                )
            child = dict(child)
            node[key] = child
            node = child
        node[keys[-1]] = value

    def merge(self, path: str, overrides: Mapping[str, Any]) -> None:
        if not isinstance(overrides, Mapping):
            raise TypeError(f"Config overrides for {path} must be a mapping (type={type(overrides).__name__})")
        current = self.get(path, None)
        self.set(path, deep_merge(current if current is not None else {}, dict(overrides), path=path))

    def merge_namespace(self, unit_id: str, overrides: Mapping[str, Any]) -> None:
        self.merge(self.namespace_path(unit_id), overrides)

    def namespace_path(self, unit_id: str) -> str:
        if not isinstance(unit_id, str) or not unit_id.strip():
            raise ValueError("unit_id must be a non-empty string")
        return f"{UNIT_NAMESPACE_ROOT}.{unit_id.strip()}"

    def namespace(self, unit_id: str) -> dict[str, Any]:
        value = self.get(self.namespace_path(unit_id), None)
        return dict(value) if isinstance(value, Mapping) else {}

    def get_str(self, path: str, *, default: str | None | object = _MISSING) -> str | None:
        value = self.get(path, default)
        if value is None:
            return None
        if not isinstance(value, str):
            raise TypeError(f"{path} must be a string (type={type(value).__name__})")
        return value


def _split_path(path: str) -> list[str]:
    if not isinstance(path, str) or not path.strip():
        raise TypeError("Config path must be a non-empty string")
    keys = [part.strip() for part in path.strip().split(".")]
    if any(not key for key in keys):
        raise ValueError(f"Invalid config path: {path!r}")
    return keys
