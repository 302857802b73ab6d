from __future__ import annotations

from composekit.units import UnitContext, UnitRef

KIND_ID = "modules.text"


def _run(ctx: UnitContext) -> str:
    return ctx.config.get_str(ctx.unit_key("text"), default="") or ""


UNIT = UnitRef(
    id=KIND_ID,
    fn=_run,
    doc="Returns the configured `text` as raw (non-HTML) output.",
    defaults={"text": ""},
    tags=("module", "raw"),
)
