from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

DEFAULT_FALLBACK_UNIT = "pages.static"

_SCHEMA: dict[str, tuple[str, ...]] = {
    "modules": ("rules_path",),
    "router": ("routes", "fallback"),
    "units": ("extra_modules", "config"),
    "log": ("path",),
}


def parse_bool(value: Any, path: str) -> bool:
    """
    Strict boolean parsing to avoid bool('false') footguns.

    Accepts True/False, 0/1 and the strings true/false/1/0/yes/no
    (case-insensitive, surrounding whitespace ignored).
    """

    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"Invalid boolean for {path}: {value!r}")
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes"}:
            return True
        if normalized in {"false", "0", "no"}:
            return False
    raise ValueError(f"Invalid boolean for {path}: {value!r}")


def _optional_path(value: Any, path: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Invalid config value for {path}: must be a non-empty string")
    return os.path.expandvars(os.path.expanduser(value.strip()))


def _section(cfg: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = cfg.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValueError(f"Invalid config type for {key}: expected mapping, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class AppConfig:
    rules_path: str | None = None
    routes: tuple[tuple[str, str], ...] = ()
    fallback_unit: str = DEFAULT_FALLBACK_UNIT
    extra_unit_modules: tuple[str, ...] = ()
    unit_config: dict[str, dict[str, Any]] = field(default_factory=dict)
    log_dir: str | None = None
    strict: bool = False

    @staticmethod
    def from_dict(cfg: Mapping[str, Any]) -> tuple["AppConfig", list[str]]:
        """
        Parse and validate configuration, returning (AppConfig, warnings).

        Unknown keys are warnings unless `strict: true`, in which case they raise.

        Raises:
            ValueError: if keys are invalid.
        """

        if not isinstance(cfg, Mapping):
            raise ValueError("Config must be a mapping")

        warnings: list[str] = []
        strict = parse_bool(cfg.get("strict", False), "strict")

        unknown: list[str] = []
        for key, value in cfg.items():
            if key == "strict":
                continue
            if key not in _SCHEMA:
                unknown.append(str(key))
                continue
            if isinstance(value, Mapping):
                unknown.extend(f"{key}.{sub}" for sub in value if sub not in _SCHEMA[key])
        if unknown:
            message = f"Unknown config keys: {', '.join(sorted(unknown))}"
            if strict:
                raise ValueError(message)
            warnings.append(message)

        modules = _section(cfg, "modules")
        router = _section(cfg, "router")
        units = _section(cfg, "units")
        log = _section(cfg, "log")

        raw_routes = router.get("routes") or {}
        if not isinstance(raw_routes, Mapping):
            raise ValueError("Invalid config type for router.routes: expected mapping")
        routes: list[tuple[str, str]] = []
        for pattern, target in raw_routes.items():
            if not isinstance(pattern, str) or not isinstance(target, str) or not target.strip():
                raise ValueError(f"Invalid route router.routes[{pattern!r}]: expected string -> unit id")
            routes.append((pattern, target.strip()))

        fallback = router.get("fallback", DEFAULT_FALLBACK_UNIT)
        if not isinstance(fallback, str) or not fallback.strip():
            raise ValueError("Invalid config value for router.fallback: must be a non-empty string")

        extra_modules = units.get("extra_modules") or []
        if isinstance(extra_modules, str) or not isinstance(extra_modules, (list, tuple)):
            raise ValueError("Invalid config type for units.extra_modules: expected list of strings")
        for idx, name in enumerate(extra_modules):
            if not isinstance(name, str) or not name.strip():
                raise ValueError(f"Invalid config value for units.extra_modules[{idx}]")

        raw_unit_config = units.get("config") or {}
        if not isinstance(raw_unit_config, Mapping):
            raise ValueError("Invalid config type for units.config: expected mapping")
        unit_config: dict[str, dict[str, Any]] = {}
        for unit_id, values in raw_unit_config.items():
            if values is None:
                values = {}
            if not isinstance(values, Mapping):
                raise ValueError(f"Invalid config type for units.config.{unit_id}: expected mapping")
            unit_config[str(unit_id)] = dict(values)

        return (
            AppConfig(
                rules_path=_optional_path(modules.get("rules_path"), "modules.rules_path"),
                routes=tuple(routes),
                fallback_unit=fallback.strip(),
                extra_unit_modules=tuple(name.strip() for name in extra_modules),
                unit_config=unit_config,
                log_dir=_optional_path(log.get("path"), "log.path"),
                strict=strict,
            ),
            warnings,
        )
