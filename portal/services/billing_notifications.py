# portal/services/billing_notifications.py
import logging
from sqlalchemy.exc import SQLAlchemyError
from ..extensions import db
from ..models.invoice import Invoice
from ..models.notification import Notification
from .email_service import send_email
from .razorpay_gateway import to_minor_units

log = logging.getLogger(__name__)


def notify_payment_received(invoice: Invoice, *, source: str) -> bool:
    """In-app notification + receipt email for the project's client.

    Called once per invoice, right after the settling write. Failures are
    logged and never undo the settlement.
    """
    project = invoice.project
    client = getattr(project, "client", None)
    if client is None:
        log.warning("Invoice %s has no client to notify", invoice.id)
        return False

    try:
        db.session.add(Notification(
            user_id=client.id,
            project_id=project.id,
            title="Payment received",
            message=f"Payment for “{invoice.title}” ({invoice.amount} {invoice.currency}) was received.",
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        log.error("Payment notification failed for invoice=%s: %s", invoice.id, e)

    payment = {
        "provider": "Razorpay",
        "payment_id": invoice.gateway_payment_id,
        "order_id": invoice.gateway_order_id,
        "amount_minor": to_minor_units(invoice.amount, invoice.currency),
        "paid_at": invoice.paid_at,
        "source": source,
    }
    return send_email(
        to=client.email,
        subject=f"Payment received: {invoice.title}",
        template="payment_received.html",
        client=client,
        project=project,
        invoice=invoice,
        payment=payment,
    )
