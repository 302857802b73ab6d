from __future__ import annotations

import importlib
from typing import Iterable

from composekit.units import UnitRef, UnitRegistry


def _exported_units(module_name: str) -> list[UnitRef]:
    module = importlib.import_module(module_name)
    exported = getattr(module, "__all_units__", None)
    if isinstance(exported, (list, tuple)):
        refs = list(exported)
    else:
        single = getattr(module, "UNIT", None)
        if single is None:
            raise ValueError(f"Unit module {module_name} exports neither __all_units__ nor UNIT")
        refs = [single]

    for ref in refs:
        if not isinstance(ref, UnitRef):
            raise TypeError(f"Unit module {module_name} exported non-UnitRef (type={type(ref).__name__})")
    return refs


def get_unit_registry(extra_modules: Iterable[str] = ()) -> UnitRegistry:
    # Built-ins first; extra modules come from config (`units.extra_modules`).
    refs = _exported_units("pagecomposer.units")
    for name in extra_modules:
        refs.extend(_exported_units(name))
    return UnitRegistry.from_refs(refs)


def list_units(extra_modules: Iterable[str] = ()) -> None:
    for entry in get_unit_registry(extra_modules).describe():
        doc = entry.get("doc") or ""
        print(f"{entry['unit_id']}\t{doc}")
