from __future__ import annotations

"""Module queue: scheduled units, runtime queue mutation, and queue building.

The queue is list-backed and pop-front: dequeued entries leave the list, so every
position used by the mutation API refers to entries that have not run yet.
"""

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, TypeAlias

from composekit.document import ALLOWED_ACTIONS
from composekit.errors import CompositionError, ConfigurationError

PathMatcher: TypeAlias = Callable[[str, str], bool]

MAIN_SELECTOR = "html"
MAIN_PATH_PATTERN = ".*"

RULE_KEYS: tuple[str, ...] = ("pre", "post")
DESCRIPTOR_KEYS: tuple[str, ...] = ("unit", "action", "selector", "config")

logger = logging.getLogger(__name__)


def regex_path_matcher(pattern: str, path: str) -> bool:
    try:
        return re.search(pattern, path) is not None
    except re.error as exc:
        raise ConfigurationError(f"Invalid path pattern {pattern!r}: {exc}") from exc


@dataclass(frozen=True)
class QueueEntry:
    unit_id: str
    action: str | None = None
    selector: str | None = None
    path_pattern: str = MAIN_PATH_PATTERN
    config: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.unit_id, str) or not self.unit_id.strip():
            raise ConfigurationError("QueueEntry.unit_id must be a non-empty string")
        object.__setattr__(self, "unit_id", self.unit_id.strip())

        if self.action is not None:
            if not isinstance(self.action, str) or self.action.strip().lower() not in ALLOWED_ACTIONS:
                raise ConfigurationError(
                    f"Invalid action for unit {self.unit_id}: {self.action!r} "
                    f"(allowed: {', '.join(ALLOWED_ACTIONS)})"
                )
            object.__setattr__(self, "action", self.action.strip().lower())

        if self.selector is not None:
            if not isinstance(self.selector, str):
                raise ConfigurationError(
                    f"Selector for unit {self.unit_id} must be a string (type={type(self.selector).__name__})"
                )
            object.__setattr__(self, "selector", self.selector.strip() or None)

        if self.action is not None and self.selector is None:
            raise ConfigurationError(
                f"Unit {self.unit_id} declares action={self.action} but no selector"
            )
        if self.action is None and self.selector is not None:
            raise ConfigurationError(
                f"Unit {self.unit_id} declares selector={self.selector!r} but no action"
            )

        if not isinstance(self.path_pattern, str):
            raise ConfigurationError(
                f"path_pattern for unit {self.unit_id} must be a string "
                f"(type={type(self.path_pattern).__name__})"
            )
        if self.config is None:
            object.__setattr__(self, "config", {})
        elif not isinstance(self.config, Mapping):
            raise ConfigurationError(
                f"config for unit {self.unit_id} must be a mapping (type={type(self.config).__name__})"
            )
        else:
            object.__setattr__(self, "config", dict(self.config))

    @classmethod
    def from_descriptor(
        cls, descriptor: Mapping[str, Any], *, path_pattern: str, path: str
    ) -> "QueueEntry":
        if not isinstance(descriptor, Mapping):
            raise ConfigurationError(
                f"{path} must be a mapping (type={type(descriptor).__name__})"
            )
        unknown = sorted(str(key) for key in descriptor.keys() if key not in DESCRIPTOR_KEYS)
        if unknown:
            raise ConfigurationError(
                f"Unknown keys under {path}: {', '.join(unknown)} (allowed: {', '.join(DESCRIPTOR_KEYS)})"
            )
        if "unit" not in descriptor:
            raise ConfigurationError(f"Missing required key: {path}.unit")
        return cls(
            unit_id=descriptor["unit"],
            action=descriptor.get("action"),
            selector=descriptor.get("selector"),
            path_pattern=path_pattern,
            config=descriptor.get("config") or {},
        )


class ModuleQueue:
    """Ordered, mutable queue of pending units; drained exactly once."""

    def __init__(self, entries: Sequence[QueueEntry] = ()) -> None:
        self._entries: list[QueueEntry] = []
        self._drained = False
        for entry in entries:
            self._entries.append(self._validate_entry(entry))

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __iter__(self) -> Iterator[QueueEntry]:
        return iter(tuple(self._entries))

    def pending(self) -> tuple[QueueEntry, ...]:
        return tuple(self._entries)

    def unit_ids(self) -> tuple[str, ...]:
        return tuple(entry.unit_id for entry in self._entries)

    @property
    def drained(self) -> bool:
        return self._drained

    def begin_drain(self) -> None:
        if self._drained:
            raise CompositionError("Module queue has already been drained")
        self._drained = True

    def pop_next(self) -> QueueEntry | None:
        if not self._entries:
            return None
        return self._entries.pop(0)

    def remove_by_position(self, index: int) -> QueueEntry:
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"Queue position must be an int (type={type(index).__name__})")
        if not -len(self._entries) <= index < len(self._entries):
            raise IndexError(
                f"Queue position {index} out of range (pending entries: {len(self._entries)})"
            )
        removed = self._entries.pop(index)
        logger.debug("Removed queue entry %s at position %d", removed.unit_id, index)
        return removed

    def remove_by_pattern(self, pattern: str) -> list[QueueEntry]:
        try:
            compiled = re.compile(pattern)
        except re.error as exc:
            raise ConfigurationError(f"Invalid unit pattern {pattern!r}: {exc}") from exc

        removed = [entry for entry in self._entries if compiled.search(entry.unit_id)]
        if removed:
            self._entries = [entry for entry in self._entries if not compiled.search(entry.unit_id)]
            logger.debug(
                "Removed %d queue entr%s matching %r: %s",
                len(removed),
                "y" if len(removed) == 1 else "ies",
                pattern,
                ", ".join(entry.unit_id for entry in removed),
            )
        return removed

    def insert_at(self, entry: QueueEntry, index: int = 0) -> None:
        if isinstance(index, bool) or not isinstance(index, int):
            raise TypeError(f"Queue position must be an int (type={type(index).__name__})")
        self._entries.insert(index, self._validate_entry(entry))
        logger.debug("Inserted queue entry %s at position %d", entry.unit_id, index)

    def _validate_entry(self, entry: QueueEntry) -> QueueEntry:
        if not isinstance(entry, QueueEntry):
            raise TypeError(f"Queue entries must be QueueEntry (type={type(entry).__name__})")
        return entry


def _rule_entries(
    rules: Mapping[str, Any], group: str, path: str, matcher: PathMatcher
) -> list[QueueEntry]:
    entries: list[QueueEntry] = []
    for pattern, rule in rules.items():
        if not isinstance(rule, Mapping):
            raise ConfigurationError(
                f"Module rule {pattern!r} must be a mapping (type={type(rule).__name__})"
            )
        if not matcher(pattern, path):
            continue
        descriptors = rule.get(group) or []
        if not isinstance(descriptors, (list, tuple)):
            raise ConfigurationError(
                f"Module rule {pattern!r}.{group} must be a list (type={type(descriptors).__name__})"
            )
        for idx, descriptor in enumerate(descriptors):
            entries.append(
                QueueEntry.from_descriptor(
                    descriptor, path_pattern=pattern, path=f"{pattern}.{group}[{idx}]"
                )
            )
    return entries


def build_queue(
    rules: Mapping[str, Any] | None,
    main_unit_id: str,
    path: str,
    *,
    matcher: PathMatcher = regex_path_matcher,
) -> ModuleQueue:
    """Build `pre*, main, post*` for `path`; rules whose pattern misses never enter the queue."""

    rules = rules or {}
    if not isinstance(rules, Mapping):
        raise ConfigurationError(f"Module rules must be a mapping (type={type(rules).__name__})")

    for pattern, rule in rules.items():
        if isinstance(rule, Mapping):
            unknown = sorted(str(key) for key in rule.keys() if key not in RULE_KEYS)
            if unknown:
                raise ConfigurationError(
                    f"Unknown keys under module rule {pattern!r}: {', '.join(unknown)} "
                    f"(allowed: {', '.join(RULE_KEYS)})"
                )

    main = QueueEntry(
        unit_id=main_unit_id,
        action="replace",
        selector=MAIN_SELECTOR,
        path_pattern=MAIN_PATH_PATTERN,
    )
    entries = [
        *_rule_entries(rules, "pre", path, matcher),
        main,
        *_rule_entries(rules, "post", path, matcher),
    ]
    logger.debug("Built module queue for %r: %s", path, ", ".join(e.unit_id for e in entries))
    return ModuleQueue(entries)
