"""Reusable page composition kernel (queue, document, selectors, units).

This package is intentionally independent of `pagecomposer.*`. Application
conventions (where rules and config come from, which units exist, routing) must
live in the consuming application.
"""

from composekit.config_store import ConfigStore
from composekit.document import ALLOWED_ACTIONS, Document, MutateAction
from composekit.engine import (
    ComposedOutput,
    Composer,
    Composition,
    DefaultUnitRecorder,
    NullUnitRecorder,
    UnitRecorder,
)
from composekit.errors import CompositionError, ConfigurationError, OutputConflictError
from composekit.events import AFTER_OUTPUT, EventBus
from composekit.queue import ModuleQueue, QueueEntry, build_queue, regex_path_matcher
from composekit.selectors import XPATH_PREFIX, translate
from composekit.units import (
    EMPTY,
    Empty,
    Html,
    Raw,
    UnitContext,
    UnitOutput,
    UnitRef,
    UnitRegistry,
    UnitRunner,
    classify_output,
)
from composekit.views import CsvView, HtmlView, JsonView, RenderableView, TextView

__all__ = [
    "AFTER_OUTPUT",
    "ALLOWED_ACTIONS",
    "ComposedOutput",
    "Composer",
    "Composition",
    "CompositionError",
    "ConfigStore",
    "ConfigurationError",
    "CsvView",
    "DefaultUnitRecorder",
    "Document",
    "EMPTY",
    "Empty",
    "EventBus",
    "Html",
    "HtmlView",
    "JsonView",
    "ModuleQueue",
    "MutateAction",
    "NullUnitRecorder",
    "OutputConflictError",
    "QueueEntry",
    "Raw",
    "RenderableView",
    "TextView",
    "UnitContext",
    "UnitOutput",
    "UnitRecorder",
    "UnitRef",
    "UnitRegistry",
    "UnitRunner",
    "XPATH_PREFIX",
    "build_queue",
    "classify_output",
    "regex_path_matcher",
    "translate",
]
