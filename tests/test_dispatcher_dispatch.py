from unittest import mock

import pytest

from eventdispatch.core.contracts import Event, FunctionHandler
from eventdispatch.core.metrics import counter_value, snapshot_all


def test_dispatch_calls_handler_once(dispatcher, event1):
    eh = mock.Mock()
    dispatcher.register(event1.name, eh)

    dispatcher.dispatch(event1)

    eh.handle.assert_called_once_with(event1)


def test_dispatch_in_registration_order(dispatcher, journal, event1, h1, h2):
    dispatcher.register(event1.name, h1)
    dispatcher.register(event1.name, h2)

    dispatcher.dispatch(event1)

    assert [hid for hid, _ in journal] == [1, 2]
    assert all(ev is event1 for _, ev in journal)


def test_dispatch_only_matching_name(dispatcher, journal, event1, event2, h1, h2):
    dispatcher.register(event1.name, h1)
    dispatcher.register(event2.name, h2)

    dispatcher.dispatch(event2)

    assert [hid for hid, _ in journal] == [2]


def test_dispatch_unregistered_name_is_silent(dispatcher, journal, h1):
    dispatcher.register("other", h1)
    dispatcher.dispatch(Event("nobody.listens", {"x": 1}))
    assert journal == []
    assert counter_value("dispatcher_dispatch_total", event="nobody.listens") == 0.0
    assert not [c for c in snapshot_all()["counters"] if c["labels"].get("event") == "nobody.listens"]


def test_dispatch_after_all_removed_is_silent(dispatcher, journal, event1, h1):
    dispatcher.register(event1.name, h1)
    dispatcher.remove(event1.name, h1)
    dispatcher.dispatch(event1)
    assert journal == []


def test_payload_passed_through_untouched(dispatcher):
    payload = object()
    seen = []
    dispatcher.register("p", lambda ev: seen.append(ev.payload))
    dispatcher.dispatch(Event("p", payload))
    assert seen[0] is payload


def test_duck_typed_event(dispatcher):
    class Custom:
        name = "duck"
        payload = {"k": "v"}
        created_at = 0.0

    got = []
    dispatcher.register("duck", FunctionHandler(got.append))
    ev = Custom()
    dispatcher.dispatch(ev)
    assert got == [ev]


def test_handler_error_propagates_and_stops_dispatch(dispatcher, journal, event1, h2):
    def boom(ev):
        raise RuntimeError("handler failed")

    dispatcher.register(event1.name, boom)
    dispatcher.register(event1.name, h2)

    with pytest.raises(RuntimeError, match="handler failed"):
        dispatcher.dispatch(event1)

    # fail-fast: h2 never ran
    assert journal == []
    # registrations untouched by the failure
    assert dispatcher.handlers(event1.name) == (boom, h2)

    hists = [h for h in snapshot_all()["hists"] if h["name"] == "dispatcher_dispatch_ms"]
    assert hists and hists[0]["count"] == 1.0


def test_dispatch_metrics(dispatcher, event1, h1):
    dispatcher.register(event1.name, h1)
    dispatcher.dispatch(event1)
    dispatcher.dispatch(event1)
    assert counter_value("dispatcher_dispatch_total", event="test1") == 2.0


def test_dispatch_debug_logging(dispatcher, caplog, event1, h1):
    caplog.set_level("DEBUG", logger=dispatcher.name)
    dispatcher.register(event1.name, h1)
    dispatcher.dispatch(event1)
    text = " ".join(r.getMessage() for r in caplog.records if r.name == dispatcher.name)
    assert "registered event=test1" in text
    assert "dispatched event=test1 to 1 handler(s)" in text
