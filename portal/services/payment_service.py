# portal/services/payment_service.py
"""Invoice payment lifecycle: draft/pending -> (order created) -> paid.

Three entry points move an invoice forward:

* ``create_order_for_invoice`` - user-initiated, creates at most one
  gateway order per invoice.
* ``handle_webhook`` - gateway-initiated, signed with the webhook secret.
* ``verify_client_payment`` - browser-initiated after checkout, signed by the
  gateway with the key secret.

``reconcile_invoice`` is a polling fallback that asks the gateway directly.
The last three all settle through ``settle_invoice``.
"""
from __future__ import annotations
import enum, logging
from dataclasses import dataclass
from datetime import datetime

from ..errors import BadRequest, Conflict, Forbidden, NotFound, Unauthorized
from ..models.invoice import Invoice
from . import invoice_store
from .billing_notifications import notify_payment_received
from .razorpay_gateway import WebhookEvent, gateway, to_minor_units
from .signatures import verify_hmac, verify_order_payment_pair

log = logging.getLogger(__name__)

# Statuses for which no gateway order may be created.
UNPAYABLE_STATUSES = {
    "paid": "Invoice is already paid",
    "cancelled": "Invoice has been cancelled",
}


# -----------------
# Helpers
# -----------------

def _can_pay(user, owner_id: str) -> bool:
    """Client who owns the project or an admin can act on the invoice."""
    return bool(
        getattr(user, "is_authenticated", False)
        and (getattr(user, "is_admin", False) or owner_id == getattr(user, "id", None))
    )


def _load_for_user(invoice_id: str, user) -> Invoice:
    invoice, owner_id = invoice_store.get_invoice_with_project_owner(invoice_id)
    if not _can_pay(user, owner_id):
        log.warning("User %s denied access to invoice %s", getattr(user, "id", None), invoice_id)
        raise Forbidden("Access denied to this invoice")
    return invoice


def _order_response(order_id: str, amount_minor: int, currency: str, message: str) -> dict:
    return {
        "order_id": order_id,
        "amount": amount_minor,
        "currency": currency,
        "key_id": gateway().settings.key_id,
        "message": message,
    }


def settle_invoice(invoice: Invoice, payment_id: str, *, source: str) -> bool:
    """Move ``invoice`` to paid with ``payment_id`` (idempotent).

    Returns True only for the call that performed the transition; side
    effects (notification, receipt) run for that call alone.
    """
    if invoice.is_paid and invoice.gateway_payment_id:
        if invoice.gateway_payment_id != payment_id:
            log.warning("Invoice %s already settled by payment %s; ignoring %s from %s",
                        invoice.id, invoice.gateway_payment_id, payment_id, source)
        else:
            log.info("Payment %s already processed for invoice %s (%s)", payment_id, invoice.id, source)
        return False

    applied = invoice_store.mark_paid(invoice.id, payment_id, datetime.utcnow())
    fresh = invoice_store.get_invoice(invoice.id)
    if not applied:
        log.info("Invoice %s was settled concurrently (payment=%s, %s lost)",
                 invoice.id, fresh.gateway_payment_id, source)
        return False

    log.info("Invoice %s settled via %s (order=%s payment=%s)",
             invoice.id, source, fresh.gateway_order_id, payment_id)
    notify_payment_received(fresh, source=source)
    return True


# -----------------
# Order orchestrator
# -----------------

def create_order_for_invoice(invoice_id: str, user) -> dict:
    invoice = _load_for_user(invoice_id, user)

    reason = UNPAYABLE_STATUSES.get(invoice.status)
    if reason:
        raise Conflict(reason, invoice_id=invoice.id)

    # An order already exists: hand it back unchanged
    if invoice.gateway_order_id:
        log.info("Reusing order %s for invoice %s", invoice.gateway_order_id, invoice.id)
        return _order_response(
            invoice.gateway_order_id,
            to_minor_units(invoice.amount, invoice.currency),
            invoice.currency,
            "Order already exists",
        )

    client = gateway()
    client.settings.require_credentials()

    amount_minor = to_minor_units(invoice.amount, invoice.currency)
    # Nothing is written until the gateway confirms the order
    order = client.create_order(
        amount_minor=amount_minor,
        currency=invoice.currency,
        receipt=invoice.id.replace("-", ""),
        notes={
            "invoice_id": invoice.id,
            "project_id": invoice.project_id,
            "invoice_title": invoice.title,
        },
    )

    if not invoice_store.set_gateway_order(invoice.id, order.order_id):
        current = invoice_store.get_invoice(invoice.id)
        log.warning("Order %s for invoice %s discarded; invoice already has order=%s status=%s",
                    order.order_id, invoice.id, current.gateway_order_id, current.status)
        if current.gateway_order_id:
            return _order_response(
                current.gateway_order_id,
                to_minor_units(current.amount, current.currency),
                current.currency,
                "Order already exists",
            )
        raise Conflict(UNPAYABLE_STATUSES["paid"], invoice_id=invoice.id)

    return _order_response(order.order_id, order.amount_minor, order.currency,
                           "Order created successfully")


# -----------------
# Webhook
# -----------------

class WebhookAction(enum.Enum):
    PROCESS = "process"
    IGNORE = "ignore"


# Anything not listed is acknowledged with 200 and ignored; the gateway
# retries every non-2xx response.
WEBHOOK_ACTIONS = {
    "payment.captured": WebhookAction.PROCESS,
}


def webhook_action(event_name: str) -> WebhookAction:
    return WEBHOOK_ACTIONS.get(event_name, WebhookAction.IGNORE)


@dataclass(frozen=True)
class WebhookResult:
    message: str
    invoice_id: str | None = None
    settled: bool = False


def handle_webhook(raw_body: bytes, signature: str | None) -> WebhookResult:
    """Authenticate and apply one gateway event.

    Raises Unauthorized (signature), ConfigurationError (no secret) or
    BadRequest (body). Every other outcome is a WebhookResult -> HTTP 200.
    """
    if not signature:
        log.error("Missing webhook signature")
        raise Unauthorized("Missing signature")

    secret = gateway().settings.require_webhook_secret()
    # verify the raw bytes before looking inside them
    if not verify_hmac(raw_body, signature, secret):
        log.error("Invalid webhook signature")
        raise Unauthorized("Invalid signature")

    try:
        event = WebhookEvent.parse(raw_body)
    except ValueError as e:
        log.error("Rejected webhook body: %s", e)
        raise BadRequest("Invalid webhook payload")

    log.info("Webhook event received: %s", event.event)
    if webhook_action(event.event) is WebhookAction.IGNORE:
        log.info("Unhandled webhook event: %s", event.event)
        return WebhookResult("Event received")

    try:
        payment = event.payment()
    except ValueError as e:
        log.error("Rejected %s event: %s", event.event, e)
        raise BadRequest("Invalid webhook payload")

    log.info("Processing payment order=%s payment=%s", payment.order_id, payment.payment_id)
    invoice = invoice_store.find_by_gateway_order_id(payment.order_id)
    if invoice is None:
        log.error("Invoice not found for order: %s", payment.order_id)
        return WebhookResult("Invoice not found")

    if invoice.is_paid and invoice.gateway_payment_id:
        log.info("Payment already processed for invoice: %s", invoice.id)
        return WebhookResult("Payment already processed", invoice_id=invoice.id)

    settled = settle_invoice(invoice, payment.payment_id, source="webhook")
    return WebhookResult(
        "Payment processed successfully" if settled else "Payment already processed",
        invoice_id=invoice.id,
        settled=settled,
    )


# -----------------
# Client-side verification
# -----------------

def verify_client_payment(order_id: str | None, payment_id: str | None,
                          signature: str | None) -> Invoice:
    if not order_id or not payment_id or not signature:
        raise BadRequest("Missing required parameters")

    secret = gateway().settings.require_key_secret()
    if not verify_order_payment_pair(order_id, payment_id, signature, secret):
        log.warning("Invalid payment signature for order=%s payment=%s", order_id, payment_id)
        raise BadRequest("Invalid payment signature")

    invoice = invoice_store.find_by_gateway_order_id(order_id)
    if invoice is None:
        log.error("Verified payment %s references unknown order %s", payment_id, order_id)
        raise NotFound("Invoice not found", order_id=order_id)

    settle_invoice(invoice, payment_id, source="client")
    return invoice_store.get_invoice(invoice.id)


# -----------------
# Reconciliation (polling fallback)
# -----------------

def reconcile_invoice(invoice_id: str, user) -> tuple[Invoice, bool]:
    """Ask the gateway for captured payments on the invoice's order.

    Returns ``(invoice, settled_now)``.
    """
    invoice = _load_for_user(invoice_id, user)
    if invoice.is_paid and invoice.gateway_payment_id:
        return invoice, False
    if not invoice.gateway_order_id:
        raise Conflict("No payment order exists for this invoice", invoice_id=invoice.id)

    payments = gateway().fetch_order_payments(invoice.gateway_order_id)
    captured = sorted(
        (p for p in payments if p.is_captured and p.order_id == invoice.gateway_order_id),
        key=lambda p: p.created_at.timestamp() if p.created_at else 0,
    )
    if not captured:
        log.info("No captured payment yet for invoice %s (order=%s, %d attempt(s))",
                 invoice.id, invoice.gateway_order_id, len(payments))
        return invoice, False

    settled = settle_invoice(invoice, captured[0].payment_id, source="reconcile")
    return invoice_store.get_invoice(invoice.id), settled
