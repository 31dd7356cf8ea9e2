# portal/services/invoice_store.py
"""The only code in the payment flow that writes invoice rows.

Writes are single conditional UPDATEs so that the persisted
``gateway_order_id`` / ``gateway_payment_id`` columns decide the race
between concurrent handlers, not whatever a handler read a moment earlier.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFound, StoreError
from ..extensions import db
from ..models.invoice import Invoice
from ..models.project import Project

log = logging.getLogger(__name__)


def _write(action: str, query, values: dict, **ctx) -> int:
    try:
        updated = query.update(values, synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        log.error("Invoice store %s failed %s: %s", action, ctx, e)
        raise StoreError(**ctx)
    return updated


def get_invoice_with_project_owner(invoice_id: str) -> Tuple[Invoice, str]:
    """Return ``(invoice, project_client_id)``; NotFound if there is no such invoice."""
    row = (
        db.session.query(Invoice, Project.client_id)
        .join(Project, Invoice.project_id == Project.id)
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if row is None:
        raise NotFound("Invoice not found", invoice_id=invoice_id)
    return row[0], row[1]


def get_invoice(invoice_id: str) -> Invoice:
    inv = db.session.get(Invoice, invoice_id)
    if inv is None:
        raise NotFound("Invoice not found", invoice_id=invoice_id)
    return inv


def find_by_gateway_order_id(order_id: str) -> Optional[Invoice]:
    if not order_id:
        return None
    return Invoice.query.filter_by(gateway_order_id=order_id).first()


def set_gateway_order(invoice_id: str, order_id: str) -> bool:
    """Attach a gateway order and move the invoice to ``pending``.

    Only applies while no order is attached and the invoice is unpaid.
    Returns False when another writer got there first.
    """
    query = Invoice.query.filter(
        Invoice.id == invoice_id,
        Invoice.gateway_order_id.is_(None),
        Invoice.status != "paid",
    )
    updated = _write(
        "set_gateway_order", query,
        {Invoice.gateway_order_id: order_id, Invoice.status: "pending"},
        invoice_id=invoice_id, order_id=order_id,
    )
    if updated:
        log.info("Invoice %s linked to order %s (status=pending)", invoice_id, order_id)
    return bool(updated)


def mark_paid(invoice_id: str, payment_id: str, paid_at: datetime | None = None) -> bool:
    """Settle the invoice with ``payment_id``.

    Applies only while no payment id is recorded, so a replay or a racing
    handler becomes a no-op and a second, different payment id never
    replaces the first. Returns True if this call did the transition.
    """
    paid_at = paid_at or datetime.utcnow()
    query = Invoice.query.filter(
        Invoice.id == invoice_id,
        Invoice.gateway_payment_id.is_(None),
    )
    updated = _write(
        "mark_paid", query,
        {
            Invoice.status: "paid",
            Invoice.gateway_payment_id: payment_id,
            Invoice.paid_at: paid_at,
        },
        invoice_id=invoice_id, payment_id=payment_id,
    )
    if updated:
        log.info("Invoice %s marked paid (payment=%s)", invoice_id, payment_id)
    return bool(updated)
