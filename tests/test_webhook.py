import json

import pytest

from portal.extensions import db
from portal.models import Notification
from portal.services import invoice_store
from portal.services.payment_service import WebhookAction, webhook_action
from portal.services.razorpay_gateway import GatewaySettings, RazorpayClient

from conftest import auth, captured_event, reload, sign


def _post(client, body: bytes, signature=None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers["X-Razorpay-Signature"] = signature
    return client.post("/payments/webhook", data=body, headers=headers)


@pytest.fixture
def ordered_invoice(invoice_id):
    invoice_store.set_gateway_order(invoice_id, "order_1")
    return invoice_id


@pytest.mark.parametrize("event, action", [
    ("payment.captured", WebhookAction.PROCESS),
    ("payment.authorized", WebhookAction.IGNORE),
    ("payment.failed", WebhookAction.IGNORE),
    ("order.paid", WebhookAction.IGNORE),
    ("refund.created", WebhookAction.IGNORE),
    ("something.new", WebhookAction.IGNORE),
])
def test_decision_table(event, action):
    assert webhook_action(event) is action


def test_full_payment_scenario(client, fake_gateway, client_user, invoice_id):
    order = client.post("/payments/create-order", json={"invoice_id": invoice_id},
                        headers=auth(client_user)).get_json()
    assert order["amount"] == 15000

    body = captured_event(order["order_id"], "pay_1")
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Payment processed successfully"

    inv = reload(invoice_id)
    assert inv.status == "paid"
    assert inv.gateway_payment_id == "pay_1"
    assert inv.paid_at is not None
    paid_at = inv.paid_at

    # replay
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Payment already processed"
    inv = reload(invoice_id)
    assert inv.gateway_payment_id == "pay_1"
    assert inv.paid_at == paid_at


def test_replay_creates_one_notification(client, fake_gateway, ordered_invoice, client_user):
    body = captured_event("order_1", "pay_1")
    _post(client, body, sign(body))
    _post(client, body, sign(body))
    assert Notification.query.filter_by(user_id=client_user.id).count() == 1


def test_missing_signature(client, ordered_invoice):
    body = captured_event("order_1")
    resp = _post(client, body)
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Missing signature"
    assert reload(ordered_invoice).status == "pending"


def test_invalid_signature_does_not_mutate(client, ordered_invoice):
    body = captured_event("order_1")
    resp = _post(client, body, sign(body, "wrong-secret"))
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Invalid signature"
    inv = reload(ordered_invoice)
    assert inv.status == "pending"
    assert inv.gateway_payment_id is None


def test_signature_checked_before_parsing(client):
    resp = _post(client, b"not json at all", "deadbeef")
    assert resp.status_code == 401


def test_missing_webhook_secret_is_500(app, client, ordered_invoice):
    app.extensions["razorpay"] = RazorpayClient(
        GatewaySettings(key_id="k", key_secret="s", webhook_secret=None))
    body = captured_event("order_1")
    resp = _post(client, body, sign(body))
    assert resp.status_code == 500
    assert resp.get_json()["error"] == "Webhook not configured"


def test_unparseable_body_with_valid_signature_is_400(client):
    body = b"{broken"
    assert _post(client, body, sign(body)).status_code == 400


def test_captured_event_without_payment_entity_is_400(client, ordered_invoice):
    body = json.dumps({"event": "payment.captured", "payload": {}}).encode()
    assert _post(client, body, sign(body)).status_code == 400
    assert reload(ordered_invoice).status == "pending"


def test_other_events_are_acknowledged_and_ignored(client, ordered_invoice):
    body = captured_event("order_1", event="payment.authorized")
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Event received"
    assert reload(ordered_invoice).status == "pending"


def test_unknown_order_still_returns_200(client, ordered_invoice):
    body = captured_event("order_from_elsewhere")
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Invoice not found"
    assert reload(ordered_invoice).status == "pending"


def test_manually_paid_invoice_gets_payment_id(client, ordered_invoice):
    inv = reload(ordered_invoice)
    inv.status = "paid"  # admin override, no payment id
    db.session.commit()

    body = captured_event("order_1", "pay_late")
    assert _post(client, body, sign(body)).status_code == 200
    inv = reload(ordered_invoice)
    assert inv.gateway_payment_id == "pay_late"
    assert inv.paid_at is not None


def test_conflicting_payment_id_does_not_overwrite(client, ordered_invoice):
    first = captured_event("order_1", "pay_1")
    second = captured_event("order_1", "pay_2")
    _post(client, first, sign(first))
    resp = _post(client, second, sign(second))
    assert resp.status_code == 200
    assert reload(ordered_invoice).gateway_payment_id == "pay_1"


def _captured_entity(entity: dict) -> bytes:
    return json.dumps({
        "event": "payment.captured",
        "payload": {"payment": {"entity": entity}},
    }).encode()


@pytest.mark.parametrize("entity", [
    {"id": "pay_x", "order_id": None, "status": "captured", "amount": 15000, "currency": "USD"},
    {"id": "pay_x", "status": "captured", "amount": 15000, "currency": "USD"},
])
def test_captured_event_without_order_is_not_found(client, ordered_invoice, entity):
    body = _captured_entity(entity)
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Invoice not found"
    assert reload(ordered_invoice).status == "pending"


def test_captured_event_with_only_id_and_order_is_processed(client, ordered_invoice):
    body = _captured_entity({"id": "pay_min", "order_id": "order_1"})
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Payment processed successfully"
    assert reload(ordered_invoice).gateway_payment_id == "pay_min"


def test_captured_event_minimal_entity_unknown_order(client, ordered_invoice):
    body = _captured_entity({"id": "pay_x", "order_id": "order_zzz"})
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Invoice not found"


@pytest.mark.parametrize("created_at", [10 ** 20, {"seconds": 1}, [1700000000], "yesterday"])
def test_unreadable_timestamp_does_not_fail_the_event(client, ordered_invoice, created_at):
    body = _captured_entity({"id": "pay_1", "order_id": "order_1", "status": "captured",
                             "amount": 15000, "currency": "USD", "created_at": created_at})
    resp = _post(client, body, sign(body))
    assert resp.status_code == 200
    assert reload(ordered_invoice).gateway_payment_id == "pay_1"


def test_captured_event_without_payment_id_is_400(client, ordered_invoice):
    body = _captured_entity({"order_id": "order_1", "status": "captured"})
    assert _post(client, body, sign(body)).status_code == 400
    assert reload(ordered_invoice).status == "pending"
