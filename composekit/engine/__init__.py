"""Engine primitives for draining module queues into one composed output."""

from composekit.engine.composer import ComposedOutput, ComposeState, Composer, Composition, OutputMode
from composekit.engine.recorder import DefaultUnitRecorder, NullUnitRecorder, UnitRecorder, utc_now_iso8601

__all__ = [
    "ComposeState",
    "ComposedOutput",
    "Composer",
    "Composition",
    "DefaultUnitRecorder",
    "NullUnitRecorder",
    "OutputMode",
    "UnitRecorder",
    "utc_now_iso8601",
]
