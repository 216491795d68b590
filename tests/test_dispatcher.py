from __future__ import annotations

import json

import pytest
from bokeh.document import Document
from bokeh.model import Model

from dashboard_worker.apps import city_sales
from dashboard_worker.channel import create_channel
from dashboard_worker.document import render_payload
from dashboard_worker.location import create_location
from dashboard_worker.runtime.dispatcher import EventDispatcher
from dashboard_worker.runtime.session import Phase, Session


def _ready_session() -> Session:
    location = create_location()
    doc = Document()
    doc.title = "sales"
    city_sales.build(doc, location)
    return Session(location=location, document=doc, phase=Phase.READY)


def _model(session: Session, name: str) -> Model:
    return session.document.select_one({"name": name})


def _change(model: Model, attr: str, new) -> str:
    return json.dumps({"events": [{"kind": "ModelChanged", "model": {"id": model.id}, "attr": attr, "new": new}]})


def _readonly_flags(location) -> dict[str, bool]:
    return {name: p.readonly for name, p in location.param.objects().items()}


@pytest.fixture()
def wiring():
    host_port, runtime_port = create_channel()
    session = _ready_session()
    return session, EventDispatcher(session, runtime_port), host_port


@pytest.mark.parametrize("message", [{"type": "resize", "width": 10}, {"type": None}, {}, "rendered", None])
def test_unrecognized_messages_do_nothing(wiring, message) -> None:
    session, dispatcher, host_port = wiring
    before = render_payload(session.document, docid="d").docs_json

    dispatcher.handle(message)

    assert host_port.drain() == []
    assert render_payload(session.document, docid="d").docs_json == before
    assert session.linked is False


def test_rendered_links_document_without_sending(wiring) -> None:
    session, dispatcher, host_port = wiring

    dispatcher.handle({"type": "rendered"})
    first = session.subscription
    dispatcher.handle({"type": "rendered"})

    assert session.linked is True
    assert session.subscription is first
    assert host_port.drain() == []


def test_patch_applies_and_acknowledges_once(wiring) -> None:
    session, dispatcher, host_port = wiring
    cities = _model(session, "cities")

    dispatcher.handle({"type": "patch", "patch": _change(cities, "value", ["Dublin"])})

    assert cities.value == ["Dublin"]
    assert _model(session, "sales").data["city"][0] == "Dublin"
    assert host_port.drain() == [{"type": "idle"}]


def test_patch_after_rendered_forwards_only_callback_changes(wiring) -> None:
    session, dispatcher, host_port = wiring
    cities = _model(session, "cities")
    source = _model(session, "sales")
    y_range = _model(session, "chart").y_range
    dispatcher.handle({"type": "rendered"})

    dispatcher.handle({"type": "patch", "patch": _change(cities, "value", ["Canton", "Dublin"])})

    messages = host_port.drain()
    assert [m["type"] for m in messages] == ["patch", "idle"]
    events = json.loads(messages[0]["patch"])["events"]
    assert {(e["model"]["id"], e["attr"]) for e in events} == {(source.id, "data"), (y_range.id, "factors")}
    assert messages[0]["buffers"] == []
    assert messages[0]["msg_id"]


def test_invalid_patch_reports_status_then_idle(wiring) -> None:
    _, dispatcher, host_port = wiring

    dispatcher.handle({"type": "patch", "patch": "{oops"})

    messages = host_port.drain()
    assert [m["type"] for m in messages] == ["status", "idle"]
    assert messages[0]["msg"].startswith("Error while applying patch")


def test_patch_for_unknown_model_reports_status_then_idle(wiring) -> None:
    _, dispatcher, host_port = wiring
    patch = json.dumps({"events": [{"kind": "ModelChanged", "model": {"id": "p-gone"}, "attr": "value", "new": 1}]})

    dispatcher.handle({"type": "patch", "patch": patch})

    assert [m["type"] for m in host_port.drain()] == ["status", "idle"]


def test_location_ignores_unknown_keys(wiring) -> None:
    session, dispatcher, host_port = wiring
    before = _readonly_flags(session.location)
    payload = {"pathname": "/sales", "search": "?x=1", "theme": "dark", "user": {"id": 1}}

    dispatcher.handle({"type": "location", "location": json.dumps(payload)})

    assert session.location.pathname == "/sales"
    assert session.location.search == "?x=1"
    assert "theme" not in session.location.param
    assert _readonly_flags(session.location) == before
    assert host_port.drain() == []


def test_location_change_reaching_the_app_is_forwarded(wiring) -> None:
    session, dispatcher, host_port = wiring
    dispatcher.handle({"type": "rendered"})

    dispatcher.handle({"type": "location", "location": json.dumps({"search": "?sort=Sales"})})

    assert _model(session, "sort_by").value == "Sales"
    assert [m["type"] for m in host_port.drain()] == ["patch"]


def test_location_failure_restores_readonly(wiring) -> None:
    session, dispatcher, host_port = wiring
    before = _readonly_flags(session.location)

    dispatcher.handle({"type": "location", "location": json.dumps({"hash": 5})})

    assert _readonly_flags(session.location) == before
    messages = host_port.drain()
    assert len(messages) == 1
    assert messages[0]["type"] == "status"
    assert messages[0]["msg"].startswith("Error while updating location: ValueError")


@pytest.mark.parametrize("payload", ["not json", json.dumps(["/sales"])])
def test_malformed_location_reports_one_status(wiring, payload: str) -> None:
    _, dispatcher, host_port = wiring

    dispatcher.handle({"type": "location", "location": payload})

    assert [m["type"] for m in host_port.drain()] == ["status"]


def test_events_are_dropped_until_session_is_ready() -> None:
    host_port, runtime_port = create_channel()
    session = Session(location=create_location(), phase=Phase.EXECUTING)
    dispatcher = EventDispatcher(session, runtime_port)

    dispatcher.handle({"type": "patch", "patch": "{}"})
    dispatcher.handle({"type": "rendered"})

    assert host_port.drain() == []
    assert session.subscription is None
