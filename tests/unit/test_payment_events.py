"""Normalisation of processor notifications and the hint pack catalog."""

import json

import pytest

from quizecon.errors import InvalidPackKey
from quizecon.payments.fulfillment import EventKind, classify_event_type, parse_event
from quizecon.payments.packs import HINT_PACKS, get_pack


class TestParseEvent:
    def test_processor_envelope(self):
        event = parse_event(json.dumps({
            "id": "evt_1",
            "type": "checkout.session.completed",
            "data": {"object": {
                "id": "cs_1",
                "payment_status": "paid",
                "metadata": {"user_id": "u1", "pack_key": "50_hints", "quantity": "50"},
            }},
        }).encode())
        assert event.event_id == "evt_1"
        assert event.kind is EventKind.SUCCEEDED
        assert event.payment_session_id == "cs_1"
        assert event.metadata["pack_key"] == "50_hints"

    def test_flat_form(self):
        event = parse_event({"type": "payment_failed", "payment_session_id": "cs_2"})
        assert event.kind is EventKind.FAILED
        assert event.payment_session_id == "cs_2"
        assert event.metadata == {}

    def test_completed_but_unpaid_is_ignored(self):
        event = parse_event({
            "type": "checkout.session.completed",
            "data": {"object": {"id": "cs_3", "payment_status": "unpaid"}},
        })
        assert event.kind is EventKind.IGNORED

    def test_async_payment_success_counts(self):
        event = parse_event({
            "type": "checkout.session.async_payment_succeeded",
            "data": {"object": {"id": "cs_4", "payment_status": "paid"}},
        })
        assert event.kind is EventKind.SUCCEEDED

    def test_unknown_type_is_ignored(self):
        assert parse_event({"type": "customer.created"}).kind is EventKind.IGNORED

    def test_non_string_session_id_dropped(self):
        assert parse_event({"type": "payment_succeeded", "payment_session_id": 42}).payment_session_id is None

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'{"no_type": true}', b'{"type": ""}'])
    def test_malformed_bodies_raise(self, body):
        with pytest.raises(ValueError):
            parse_event(body)

    def test_classification(self):
        assert classify_event_type("checkout.session.expired") is EventKind.FAILED
        assert classify_event_type("payment_succeeded") is EventKind.SUCCEEDED
        assert classify_event_type("invoice.paid") is EventKind.IGNORED


class TestPacks:
    def test_catalog_quantities(self):
        assert {k: p.quantity for k, p in HINT_PACKS.items()} == {
            "10_hints": 10,
            "50_hints": 50,
            "200_hints": 200,
        }

    def test_unknown_pack(self):
        with pytest.raises(InvalidPackKey):
            get_pack("1000_hints")
