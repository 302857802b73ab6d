"""Composition engine: drains a module queue and merges unit outputs.

One `Composition` owns one queue, one lazily created `Document` and one raw slot.
State moves `idle -> draining -> (html | raw) -> done`; HTML and raw outputs are
mutually exclusive and at most one raw output is accepted.

This module is intentionally app-agnostic and must not import `pagecomposer.*`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

from composekit.config_store import ConfigStore
from composekit.document import Document
from composekit.engine.recorder import (
    DefaultUnitRecorder,
    UnitRecorder,
    utc_now_iso8601,
    validate_recorder,
)
from composekit.errors import OutputConflictError, attach_unit_context
from composekit.events import AFTER_OUTPUT, EventBus
from composekit.queue import ModuleQueue, PathMatcher, QueueEntry, build_queue, regex_path_matcher
from composekit.selectors import translate
from composekit.units import Empty, Html, Raw, RawKind, UnitContext, UnitOutput, UnitRegistry, UnitRunner

ComposeState: TypeAlias = Literal["idle", "draining", "html", "raw", "done"]
OutputMode: TypeAlias = Literal["html", "raw", "empty"]


@dataclass(frozen=True)
class ComposedOutput:
    mode: OutputMode
    content: bytes
    raw_kind: RawKind | None = None

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class Composition:
    def __init__(
        self,
        queue: ModuleQueue,
        *,
        runner: UnitRunner,
        config: ConfigStore,
        events: EventBus,
        path: str,
        logger: logging.Logger,
        recorder: UnitRecorder,
    ) -> None:
        self.queue = queue
        self.path = path
        self.logger = logger
        self.records: list[dict[str, Any]] = []
        self.document: Document | None = None
        self.raw: Raw | None = None
        self.state: ComposeState = "idle"
        self._runner = runner
        self._config = config
        self._events = events
        self._recorder = recorder

    def run(self) -> ComposedOutput:
        self.queue.begin_drain()
        self.state = "draining"

        position = 0
        # Units may insert or remove pending entries while running; re-read every pass.
        while self.queue:
            entry = self.queue.pop_next()
            if entry is None:
                break
            position += 1
            self._run_entry(entry, position)

        result = self._finish()
        self.state = "done"
        return result

    def _run_entry(self, entry: QueueEntry, position: int) -> None:
        try:
            self._recorder.on_unit_start(self, entry, position)
            ctx = UnitContext(
                unit_id=entry.unit_id,
                entry=entry,
                path=self.path,
                queue=self.queue,
                document=self.document,
                config=self._config,
                events=self._events,
                logger=self.logger,
            )
            output = self._runner.run(entry, ctx)

            record: dict[str, Any] = {
                "unit_id": entry.unit_id,
                "position": position,
                "action": entry.action,
                "selector": entry.selector,
                "created_at": utc_now_iso8601(),
            }
            record.update(self._merge(entry, output))
            self._recorder.on_unit_end(self, record)
        except Exception as exc:
            try:
                self._recorder.on_unit_error(self, entry, position, exc)
            except Exception:
                self.logger.exception("Unit recorder failed during error handling for %s", entry.unit_id)
            attach_unit_context(exc, unit_id=entry.unit_id, queue_position=position)
            raise

    def _merge(self, entry: QueueEntry, output: UnitOutput) -> dict[str, Any]:
        if isinstance(output, Empty):
            return {"output": "empty"}

        if isinstance(output, Raw):
            if self.document is not None:
                raise OutputConflictError(
                    "HTML already produced, cannot also produce raw output",
                    unit_id=entry.unit_id,
                    prior_state=self.state,
                )
            if self.raw is not None:
                raise OutputConflictError(
                    "Multiple raw outputs; only one unit may return a string or stream",
                    unit_id=entry.unit_id,
                    prior_state=self.state,
                )
            self.raw = output
            self.state = "raw"
            return {"output": f"raw:{output.kind}", "bytes": len(output.content)}

        if not isinstance(output, Html):
            raise TypeError(f"Unknown unit output type: {type(output).__name__}")

        if self.raw is not None:
            raise OutputConflictError(
                "Raw output already produced, cannot also produce HTML",
                unit_id=entry.unit_id,
                prior_state=self.state,
            )
        if self.document is None:
            self.document = Document()
            self.logger.debug("Created document for unit %s", entry.unit_id)

        record: dict[str, Any] = {"output": "html", "bytes": len(output.content.encode("utf-8"))}
        if entry.action is not None and entry.selector is not None:
            record["affected"] = self.document.mutate(entry.action, translate(entry.selector), output.content)
            if record["affected"] == 0:
                self.logger.debug(
                    "Selector %r matched nothing for unit %s", entry.selector, entry.unit_id
                )
        self.state = "html"
        return record

    def _finish(self) -> ComposedOutput:
        if self.document is not None:
            mode: OutputMode = "html"
            content = self.document.serialize().encode("utf-8")
            raw_kind: RawKind | None = None
        elif self.raw is not None:
            mode = "raw"
            content = self.raw.content
            raw_kind = self.raw.kind
        else:
            mode = "empty"
            content = b""
            raw_kind = None

        hooked = self._events.trigger(AFTER_OUTPUT, content)
        if isinstance(hooked, str):
            hooked = hooked.encode("utf-8")
        if not isinstance(hooked, (bytes, bytearray)):
            raise TypeError(
                f"{AFTER_OUTPUT} listeners must return bytes, str or None (type={type(hooked).__name__})"
            )

        return ComposedOutput(mode=mode, content=bytes(hooked), raw_kind=raw_kind)


class Composer:
    """Builds per-request compositions that share a unit registry and config store."""

    def __init__(
        self,
        registry: UnitRegistry,
        *,
        config: ConfigStore | None = None,
        events: EventBus | None = None,
        recorder: UnitRecorder | None = None,
        matcher: PathMatcher = regex_path_matcher,
        logger: logging.Logger | None = None,
    ) -> None:
        self.registry = registry
        self.config = config if config is not None else ConfigStore()
        self.events = events if events is not None else EventBus()
        self.logger = logger or logging.getLogger(__name__)
        self._recorder = recorder or DefaultUnitRecorder()
        validate_recorder(self._recorder)
        self._matcher = matcher
        self._runner = UnitRunner(registry, self.config)

    def build_queue(
        self, main_unit_id: str, path: str, rules: Mapping[str, Any] | None = None
    ) -> ModuleQueue:
        queue = build_queue(rules, main_unit_id, path, matcher=self._matcher)
        for entry in queue.pending():
            self.registry.resolve(entry.unit_id)
        return queue

    def composition(self, queue: ModuleQueue, *, path: str) -> Composition:
        return Composition(
            queue,
            runner=self._runner,
            config=self.config,
            events=self.events,
            path=path,
            logger=self.logger,
            recorder=self._recorder,
        )

    def run_queue(self, queue: ModuleQueue, *, path: str) -> ComposedOutput:
        return self.composition(queue, path=path).run()

    def compose(
        self, main_unit_id: str, path: str, rules: Mapping[str, Any] | None = None
    ) -> ComposedOutput:
        self.logger.info("Composing %r (main unit: %s)", path, main_unit_id)
        queue = self.build_queue(main_unit_id, path, rules)
        result = self.run_queue(queue, path=path)
        self.logger.info("Composed %r (mode=%s, bytes=%d)", path, result.mode, len(result.content))
        return result
