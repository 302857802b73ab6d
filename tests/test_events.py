import pytest

from composekit.events import EventBus


def test_trigger_without_listeners_returns_data():
    assert EventBus().trigger("nothing", b"x") == b"x"


def test_listener_results_chain_and_none_keeps_data():
    bus = EventBus()
    seen = []
    bus.on("render", lambda name, data: data + "1")
    bus.on("render", lambda name, data: seen.append((name, data)))
    bus.on("render", lambda name, data: data + "2")

    assert bus.trigger("render", "0") == "012"
    assert seen == [("render", "01")]


def test_event_names_are_case_insensitive_and_multi_registration():
    bus = EventBus()
    calls = []
    bus.on(["A.Start", "a.end"], lambda name, data: calls.append(name))

    bus.trigger("a.start")
    bus.trigger("A.END")
    assert calls == ["a.start", "a.end"]
    assert set(bus.listeners()) == {"a.start", "a.end"}


def test_on_rejects_non_callables_and_blank_names():
    bus = EventBus()
    with pytest.raises(TypeError, match="callable"):
        bus.on("x", "nope")  # type: ignore[arg-type]
    with pytest.raises(ValueError, match="non-empty string"):
        bus.on(" ", lambda name, data: None)
