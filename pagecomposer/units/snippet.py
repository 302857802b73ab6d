from __future__ import annotations

from composekit.units import UnitContext, UnitRef
from composekit.views import HtmlView

KIND_ID = "modules.snippet"


def _run(ctx: UnitContext) -> HtmlView:
    return HtmlView(ctx.config.get_str(ctx.unit_key("html"), default="") or "")


UNIT = UnitRef(
    id=KIND_ID,
    fn=_run,
    doc="Injects the markup configured under `html`.",
    defaults={"html": ""},
    tags=("module",),
)
