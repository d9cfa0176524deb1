"""Unit tests for payload helpers, events and vocabularies."""

from __future__ import annotations

import pytest

from portal_workflow.engine.events import Event
from portal_workflow.engine.payload import coerce_int, interpolate
from portal_workflow.engine.vocabulary import (
    EVENT_TYPES,
    ActionType,
    EventType,
    action_type_catalogue,
    entity_type_of,
    event_type_values,
    is_known_event_type,
    normalize_event_type,
)


def test_interpolate_substitutes_known_fields_and_keeps_unknown_ones() -> None:
    payload = {"entityId": 7, "amount": 1500, "client": {"name": "Acme"}, "empty": None}

    assert interpolate("Invoice {{entityId}} for {{amount}}", payload) == "Invoice 7 for 1500"
    assert interpolate("Hi {{client.name}}", payload) == "Hi Acme"
    assert interpolate("{{missing}} / {{empty}}", payload) == "{{missing}} / {{empty}}"


def test_coerce_int() -> None:
    assert coerce_int(7) == 7
    assert coerce_int(" 12 ") == 12
    assert coerce_int("x") is None
    assert coerce_int(True) is None
    assert coerce_int(None) is None
    assert coerce_int(1.5) is None


def test_event_create_copies_payload_and_derives_fields() -> None:
    payload: dict[str, object] = {"entityId": "7", "triggeredBy": "alice@example.com"}
    event = Event.create("invoice.paid", payload)
    payload["entityId"] = 99

    assert event.entity_id == 7
    assert event.payload["entityId"] == "7"
    assert event.entity_type == "invoice"
    assert event.triggered_by == "alice@example.com"
    assert event.event_id is None
    assert event.with_id(3).event_id == 3


def test_event_defaults_triggered_by_to_system() -> None:
    assert Event.create("invoice.paid").triggered_by == "system"
    assert Event.create("invoice.paid", {"triggeredBy": "  "}).triggered_by == "system"


def test_vocabulary() -> None:
    assert len(EVENT_TYPES) > 20
    assert is_known_event_type("contract.signed")
    assert is_known_event_type("document_request.approved")
    assert not is_known_event_type("invoice.exploded")
    assert event_type_values()[0] == "invoice.created"
    assert normalize_event_type(EventType.INVOICE_PAID) == "invoice.paid"
    assert entity_type_of("document_request.approved") == "document_request"

    catalogue = action_type_catalogue()
    assert {entry["type"] for entry in catalogue} == {a.value for a in ActionType}
    assert all(entry["description"] for entry in catalogue)


def test_event_payload_is_read_only_all_the_way_down() -> None:
    event = Event.create("invoice.paid", {"client": {"tags": ["vip"]}, "amount": 5})

    with pytest.raises(TypeError):
        event.payload["amount"] = 6  # type: ignore[index]
    with pytest.raises(TypeError):
        event.payload["client"]["tags"] = []  # type: ignore[index]
    assert event.payload["client"]["tags"] == ("vip",)  # type: ignore[index]

    plain = event.payload_dict()
    plain["client"]["tags"].append("late")  # type: ignore[index]
    assert plain == {"client": {"tags": ["vip", "late"]}, "amount": 5}
    assert event.payload_dict() == {"client": {"tags": ["vip"]}, "amount": 5}
