from __future__ import annotations

from composekit.units import UnitContext, UnitRef

KIND_ID = "modules.suppress"


def _run(ctx: UnitContext) -> None:
    """Drop pending units whose id matches the configured `pattern`."""

    pattern = ctx.config.get_str(ctx.unit_key("pattern"), default=None)
    if not pattern:
        raise ValueError(f"{KIND_ID}.pattern must be a non-empty string")

    removed = ctx.queue.remove_by_pattern(pattern)
    if removed:
        ctx.logger.info(
            "Suppressed %d unit(s) matching %r: %s",
            len(removed),
            pattern,
            ", ".join(entry.unit_id for entry in removed),
        )
    return None


UNIT = UnitRef(
    id=KIND_ID,
    fn=_run,
    doc="Removes pending queue entries whose unit id matches `pattern`.",
    tags=("module", "queue"),
)
