from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from composekit.engine.composer import Composition
    from composekit.queue import QueueEntry


def utc_now_iso8601() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class UnitRecorder(Protocol):
    def on_unit_start(self, composition: "Composition", entry: "QueueEntry", position: int) -> None:
        ...

    def on_unit_end(self, composition: "Composition", record: dict[str, Any]) -> None:
        ...

    def on_unit_error(
        self, composition: "Composition", entry: "QueueEntry", position: int, exc: Exception
    ) -> None:
        ...


class DefaultUnitRecorder:
    def on_unit_start(self, composition: "Composition", entry: "QueueEntry", position: int) -> None:
        tokens: list[str] = []
        if entry.action:
            tokens.append(f"action={entry.action}")
            tokens.append(f"selector={entry.selector}")
        else:
            tokens.append("action=<none>")
        if entry.config:
            tokens.append(f"config_keys={','.join(sorted(str(k) for k in entry.config))}")
        tokens.append(f"pending={len(composition.queue)}")

        composition.logger.info("Unit: %02d/%s (%s)", position, entry.unit_id, ", ".join(tokens))

    def on_unit_end(self, composition: "Composition", record: dict[str, Any]) -> None:
        composition.records.append(record)
        label = f"{int(record.get('position', 0)):02d}/{record.get('unit_id', '<unknown>')}"
        output = record.get("output") or "empty"

        if output == "empty":
            composition.logger.info("Completed unit %s (output=empty)", label)
            return

        tokens = [f"output={output}", f"bytes={int(record.get('bytes', 0) or 0)}"]
        if "affected" in record:
            tokens.append(f"affected={int(record['affected'])}")
        composition.logger.info("Completed unit %s (%s)", label, ", ".join(tokens))

    def on_unit_error(
        self, composition: "Composition", entry: "QueueEntry", position: int, exc: Exception
    ) -> None:
        composition.logger.error("Unit failed: %02d/%s (%s)", position, entry.unit_id, exc)


class NullUnitRecorder:
    def on_unit_start(self, composition: "Composition", entry: "QueueEntry", position: int) -> None:
        return

    def on_unit_end(self, composition: "Composition", record: dict[str, Any]) -> None:
        return

    def on_unit_error(
        self, composition: "Composition", entry: "QueueEntry", position: int, exc: Exception
    ) -> None:
        return


def validate_recorder(recorder: Any) -> None:
    required = ("on_unit_start", "on_unit_end", "on_unit_error")
    for name in required:
        method = getattr(recorder, name, None)
        if method is None or not callable(method):
            raise TypeError(f"Unit recorder missing required method: {name}")
