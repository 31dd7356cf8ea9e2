# portal/blueprints/payments/routes.py
from flask import jsonify, request
from flask_login import login_required, current_user

from ...errors import BadRequest
from ...services import payment_service
from . import payments_bp


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest("Request body must be a JSON object")
    return data


# -----------------
# Start payment: create (or reuse) the gateway order
# -----------------

@payments_bp.post("/create-order")
@login_required
def create_order():
    invoice_id = _json_body().get("invoice_id")
    if not invoice_id:
        raise BadRequest("invoice_id is required")
    return jsonify(payment_service.create_order_for_invoice(str(invoice_id), current_user)), 200


# -----------------
# Gateway webhook (public, signed)
# -----------------

@payments_bp.post("/webhook")
def webhook():
    # raw bytes: the signature covers the exact body
    raw_body = request.get_data(cache=True, as_text=False)
    signature = request.headers.get("X-Razorpay-Signature")
    result = payment_service.handle_webhook(raw_body, signature)
    return jsonify({"message": result.message}), 200


# -----------------
# Checkout completion (browser)
# -----------------

@payments_bp.post("/verify-payment")
def verify_payment():
    data = _json_body()
    invoice = payment_service.verify_client_payment(
        data.get("order_id"), data.get("payment_id"), data.get("signature"),
    )
    return jsonify({"success": True, "invoice": invoice.to_dict()}), 200


# -----------------
# Polling fallback
# -----------------

@payments_bp.post("/invoices/<invoice_id>/sync")
@login_required
def sync_invoice(invoice_id):
    invoice, settled = payment_service.reconcile_invoice(invoice_id, current_user)
    return jsonify({"invoice": invoice.to_dict(), "settled": settled}), 200
