"""Checkout session creation against a mocked processor API."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from quizecon.errors import PaymentProcessorError
from quizecon.payments.packs import get_pack
from quizecon.payments.processor import StripeCheckoutProcessor

pytestmark = pytest.mark.asyncio

PRICE_IDS = {"10_hints": "price_10", "50_hints": "price_50", "200_hints": "price_200"}


def _processor(handler, price_ids: dict[str, str] | None = None) -> StripeCheckoutProcessor:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url="https://payments.test/v1",
        headers={"Authorization": "Bearer sk_test"},
    )
    return StripeCheckoutProcessor(
        secret_key="sk_test",
        price_ids=PRICE_IDS if price_ids is None else price_ids,
        success_url="https://app.test/ok",
        cancel_url="https://app.test/cancel",
        client=client,
    )


async def test_creates_session_with_pack_metadata():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "cs_live_1", "url": "https://pay.test/cs_live_1"})

    processor = _processor(handler)
    session = await processor.create_checkout_session(
        "user-1", get_pack("50_hints"), {"withdrawal_waiver_consent": "True"},
    )
    await processor.aclose()

    assert session.id == "cs_live_1"
    assert session.url == "https://pay.test/cs_live_1"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/checkout/sessions"
    assert request.headers["Authorization"] == "Bearer sk_test"
    form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
    assert form["mode"] == "payment"
    assert form["line_items[0][price]"] == "price_50"
    assert form["client_reference_id"] == "user-1"
    assert form["metadata[user_id]"] == "user-1"
    assert form["metadata[pack_key]"] == "50_hints"
    assert form["metadata[quantity]"] == "50"
    assert form["metadata[withdrawal_waiver_consent]"] == "True"


async def test_rejected_request_raises():
    processor = _processor(lambda request: httpx.Response(400, json={"error": {"message": "bad price"}}))
    with pytest.raises(PaymentProcessorError, match="rejected"):
        await processor.create_checkout_session("user-1", get_pack("10_hints"))


async def test_network_failure_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    processor = _processor(handler)
    with pytest.raises(PaymentProcessorError, match="unavailable"):
        await processor.create_checkout_session("user-1", get_pack("10_hints"))


async def test_incomplete_session_raises():
    processor = _processor(lambda request: httpx.Response(200, json={"id": "cs_1"}))
    with pytest.raises(PaymentProcessorError, match="incomplete"):
        await processor.create_checkout_session("user-1", get_pack("10_hints"))


async def test_missing_price_id_never_calls_out():
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    processor = _processor(handler, price_ids={"10_hints": "price_10"})
    with pytest.raises(PaymentProcessorError):
        await processor.create_checkout_session("user-1", get_pack("200_hints"))
    assert calls == []
