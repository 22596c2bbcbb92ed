import json

import pytest

from order_api.models import PaymentStatus


def intent_event(event_type: str, order_id, intent_id: str = None) -> dict:
    intent = {"object": "payment_intent", "metadata": {"orderId": str(order_id)}}
    if intent_id:
        intent["id"] = intent_id
    return {"type": event_type, "data": {"object": intent}}


async def place_order(client, auth_headers, order_payload) -> dict:
    r = await client.post("/order", json=order_payload(), headers=auth_headers("customer"))
    assert r.status_code == 200, r.text
    return r.json()


@pytest.mark.asyncio
async def test_succeeded_event_confirms_payment(client, auth_headers, order_payload, fetch_order):
    created = await place_order(client, auth_headers, order_payload)
    order_id = created["order"]["id"]

    r = await client.post(
        "/webhook/stripe",
        json=intent_event("payment_intent.succeeded", order_id, created["paymentIntentId"]),
    )

    assert r.status_code == 200
    assert r.json() == {"received": True, "handled": True}
    order = await fetch_order(order_id)
    assert order.payment_status == PaymentStatus.CONFIRMED
    assert order.status == "PENDING"


@pytest.mark.asyncio
async def test_failed_event_marks_payment_failed(client, auth_headers, order_payload, fetch_order):
    created = await place_order(client, auth_headers, order_payload)
    order_id = created["order"]["id"]

    r = await client.post("/webhook/stripe", json=intent_event("payment_intent.payment_failed", order_id))

    assert r.json()["handled"] is True
    assert (await fetch_order(order_id)).payment_status == PaymentStatus.PAYMENT_FAILED


@pytest.mark.asyncio
async def test_terminal_payment_state_is_not_reopened(client, auth_headers, order_payload, fetch_order):
    created = await place_order(client, auth_headers, order_payload)
    order_id = created["order"]["id"]

    await client.post("/webhook/stripe", json=intent_event("payment_intent.succeeded", order_id))
    r = await client.post("/webhook/stripe", json=intent_event("payment_intent.payment_failed", order_id))

    assert r.json()["handled"] is False
    assert (await fetch_order(order_id)).payment_status == PaymentStatus.CONFIRMED


@pytest.mark.asyncio
async def test_event_for_a_different_intent_is_ignored(client, auth_headers, order_payload, fetch_order):
    created = await place_order(client, auth_headers, order_payload)
    order_id = created["order"]["id"]

    r = await client.post(
        "/webhook/stripe", json=intent_event("payment_intent.succeeded", order_id, "pi_someone_else")
    )

    assert r.json()["handled"] is False
    assert (await fetch_order(order_id)).payment_status == PaymentStatus.PAYMENT_INITIATED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event",
    [
        {"type": "charge.refunded", "data": {"object": {}}},
        intent_event("payment_intent.succeeded", 9999),
        intent_event("payment_intent.succeeded", "not-a-number"),
        {"type": "payment_intent.succeeded"},
    ],
)
async def test_unhandled_events_are_acknowledged(client, seed, event):
    r = await client.post("/webhook/stripe", json=event)

    assert r.status_code == 200
    assert r.json() == {"received": True, "handled": False}


@pytest.mark.asyncio
async def test_unparseable_payload_is_rejected(client):
    r = await client.post(
        "/webhook/stripe", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert r.status_code == 400
    assert r.json()["error"] == "Invalid webhook payload"


@pytest.mark.asyncio
async def test_non_object_payload_is_rejected(client):
    r = await client.post("/webhook/stripe", content=json.dumps([1, 2, 3]))

    assert r.status_code == 400
