import pytest

from composekit.config_store import ConfigStore
from composekit.engine import ComposedOutput, Composer, NullUnitRecorder
from composekit.errors import CompositionError, ConfigurationError, OutputConflictError
from composekit.events import AFTER_OUTPUT, EventBus
from composekit.queue import QueueEntry
from composekit.units import UnitRef, UnitRegistry
from composekit.views import HtmlView

PAGE = '<!DOCTYPE html><html><head><title>T</title></head><body><div id="c"></div></body></html>'


def _page(ctx):
    return HtmlView(PAGE)


def _raw(ctx):
    return "raw"


def _nothing(ctx):
    return None


def _composer(units, **kwargs) -> Composer:
    kwargs.setdefault("recorder", NullUnitRecorder())
    return Composer(UnitRegistry.from_callables(units), **kwargs)


def _post(*descriptors):
    return {".*": {"post": list(descriptors)}}


def test_main_unit_html_becomes_the_document():
    units = {"page": _page, "banner": lambda ctx: HtmlView("<p>hi</p>")}
    result = _composer(units).compose("page", "home", _post({"unit": "banner", "action": "append", "selector": "#c"}))

    assert isinstance(result, ComposedOutput)
    assert result.mode == "html"
    assert result.raw_kind is None
    assert result.text.startswith("<!DOCTYPE html>")
    assert '<div id="c"><p>hi</p></div>' in result.text


def test_empty_html_empty_succeeds():
    units = {"page": _page, "quiet": _nothing}
    rules = {".*": {"pre": [{"unit": "quiet"}], "post": [{"unit": "quiet"}]}}
    result = _composer(units).compose("page", "x", rules)
    assert result.mode == "html"
    assert "<title>T</title>" in result.text


def test_raw_main_unit_returns_raw_bytes():
    result = _composer({"api": _raw}).compose("api", "x")
    assert result.mode == "raw"
    assert result.raw_kind == "string"
    assert result.content == b"raw"


def test_all_empty_units_produce_empty_output():
    result = _composer({"page": _nothing}).compose("page", "x")
    assert result.mode == "empty"
    assert result.content == b""


def test_raw_after_html_conflicts():
    units = {"page": _page, "raw": _raw}
    with pytest.raises(OutputConflictError, match="HTML already produced") as excinfo:
        _composer(units).compose("page", "x", _post({"unit": "raw"}))
    assert excinfo.value.unit_id == "raw"
    assert excinfo.value.prior_state == "html"
    assert excinfo.value.queue_position == 2


def test_second_raw_output_conflicts():
    units = {"api": _raw, "raw": _raw}
    rules = {".*": {"pre": [{"unit": "raw"}]}}
    with pytest.raises(OutputConflictError, match="Multiple raw outputs"):
        _composer(units).compose("api", "x", rules)


def test_html_after_raw_conflicts():
    units = {"api": _raw, "banner": lambda ctx: HtmlView("<p>x</p>")}
    with pytest.raises(OutputConflictError, match="Raw output already produced"):
        _composer(units).compose("api", "x", _post({"unit": "banner", "action": "append", "selector": "body"}))


def test_unknown_unit_fails_before_anything_runs():
    calls = []
    units = {"page": lambda ctx: calls.append("page")}
    with pytest.raises(ConfigurationError, match="Unknown unit id: missing"):
        _composer(units).compose("page", "x", _post({"unit": "missing"}))
    assert calls == []


def test_unsupported_output_type_carries_unit_context():
    with pytest.raises(ConfigurationError, match="unsupported type int") as excinfo:
        _composer({"page": lambda ctx: 42}).compose("page", "x")
    assert excinfo.value.unit_id == "page"
    assert excinfo.value.queue_position == 1


def test_removed_units_never_run():
    counter = {"calls": 0}

    def suppressor(ctx):
        ctx.queue.remove_by_pattern(r"^counted$")

    def counted(ctx):
        counter["calls"] += 1

    units = {"page": _page, "suppressor": suppressor, "counted": counted}
    rules = {".*": {"pre": [{"unit": "suppressor"}], "post": [{"unit": "counted"}]}}
    _composer(units).compose("page", "x", rules)
    assert counter["calls"] == 0


def test_inserted_entry_runs_next():
    order = []

    def inserter(ctx):
        order.append(ctx.unit_id)
        ctx.queue.insert_at(QueueEntry("inserted", action="append", selector="#c"))

    def inserted(ctx):
        order.append(ctx.unit_id)
        return HtmlView("<b>late</b>")

    def page(ctx):
        order.append(ctx.unit_id)
        return _page(ctx)

    units = {"page": page, "inserter": inserter, "inserted": inserted}
    result = _composer(units).compose("page", "x", _post({"unit": "inserter"}))
    assert order == ["page", "inserter", "inserted"]
    assert '<div id="c"><b>late</b></div>' in result.text


def test_config_cascade_is_visible_to_later_units():
    seen = {}

    def reader(ctx):
        seen["color"] = ctx.config.get("modules.theme.color")
        seen["own"] = ctx.unit_config

    units = {"theme": _nothing, "reader": reader}
    rules = {".*": {"pre": [{"unit": "theme", "config": {"color": "red"}}]}}
    _composer(units).compose("reader", "x", rules)
    assert seen == {"color": "red", "own": {}}


def test_unit_defaults_fill_gaps_without_overriding_store_values():
    seen = {}

    def page(ctx):
        seen.update(ctx.unit_config)

    registry = UnitRegistry.from_refs([UnitRef(id="page", fn=page, defaults={"a": 1, "b": 1})])
    store = ConfigStore()
    store.merge_namespace("page", {"a": 2})
    Composer(registry, config=store, recorder=NullUnitRecorder()).compose("page", "x")
    assert seen == {"a": 2, "b": 1}


def test_after_output_hook_can_rewrite_content():
    events = EventBus()
    events.on(AFTER_OUTPUT, lambda name, data: data + b"<!-- done -->")
    result = _composer({"page": _page}, events=events).compose("page", "x")
    assert result.text.endswith("<!-- done -->")


def test_after_output_hook_must_return_bytes_or_text():
    events = EventBus()
    events.on(AFTER_OUTPUT, lambda name, data: 123)
    with pytest.raises(TypeError, match="must return bytes"):
        _composer({"page": _page}, events=events).compose("page", "x")


def test_default_recorder_collects_records(caplog):
    composer = Composer(UnitRegistry.from_callables({"page": _page, "quiet": _nothing}))
    queue = composer.build_queue("page", "x", _post({"unit": "quiet"}))
    composition = composer.composition(queue, path="x")

    with caplog.at_level("INFO"):
        composition.run()

    assert composition.state == "done"
    assert [r["unit_id"] for r in composition.records] == ["page", "quiet"]
    assert composition.records[0]["output"] == "html"
    assert composition.records[0]["affected"] == 1
    assert composition.records[1]["output"] == "empty"
    assert "Unit: 01/page" in caplog.text


def test_queue_cannot_be_composed_twice():
    composer = _composer({"page": _page})
    queue = composer.build_queue("page", "x")
    composer.run_queue(queue, path="x")
    with pytest.raises(CompositionError, match="already been drained"):
        composer.run_queue(queue, path="x")


def test_recorder_must_implement_protocol():
    with pytest.raises(TypeError, match="missing required method: on_unit_start"):
        Composer(UnitRegistry.from_callables({}), recorder=object())


def test_doctype_only_page_composes_to_minimal_document():
    result = _composer({"page": lambda ctx: HtmlView("<!DOCTYPE html>")}).compose("page", "x")
    assert result.mode == "html"
    assert result.text.startswith("<!DOCTYPE html>")
    assert "<html></html>" in result.text


def test_unit_removed_by_position_never_runs():
    counter = {"calls": 0}

    def dropper(ctx):
        removed = ctx.queue.remove_by_position(0)
        assert removed.unit_id == "counted"

    def counted(ctx):
        counter["calls"] += 1

    units = {"page": _page, "dropper": dropper, "counted": counted}
    result = _composer(units).compose("page", "x", _post({"unit": "dropper"}, {"unit": "counted"}))
    assert counter["calls"] == 0
    assert result.mode == "html"


def test_entry_config_type_mismatch_with_defaults_is_a_configuration_error():
    registry = UnitRegistry.from_refs([UnitRef(id="page", fn=_page, defaults={"html": ""})])
    composer = Composer(registry, recorder=NullUnitRecorder())
    queue = composer.build_queue("page", "x")
    queue.remove_by_position(0)
    queue.insert_at(QueueEntry("page", config={"html": ["<p>"]}))

    with pytest.raises(ConfigurationError, match="Invalid config for unit page") as excinfo:
        composer.run_queue(queue, path="x")
    assert excinfo.value.unit_id == "page"
