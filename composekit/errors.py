from __future__ import annotations

"""Error kinds raised by the composition kernel."""

from typing import Any


class CompositionError(Exception):
    """Base class for fatal composition failures."""


class ConfigurationError(CompositionError, ValueError):
    """Malformed queue entries, unresolved units, or unrecognized unit output."""


class OutputConflictError(CompositionError, RuntimeError):
    """A unit produced an output kind that conflicts with what was already produced."""

    def __init__(self, message: str, *, unit_id: str, prior_state: str) -> None:
        super().__init__(f"{message} (unit={unit_id}, prior_state={prior_state})")
        self.unit_id = unit_id
        self.prior_state = prior_state


def attach_unit_context(exc: BaseException, **fields: Any) -> None:
    """Attach diagnostic attributes to an exception without clobbering existing ones."""

    for name, value in fields.items():
        if hasattr(exc, name):
            continue
        try:
            setattr(exc, name, value)
        except Exception:
            pass
