# portal/blueprints/admin/invoices.py
import logging
from flask import jsonify, request
from flask_login import login_required, current_user
from ...errors import BadRequest, Conflict, NotFound
from ...extensions import db
from ...models.invoice import Invoice, INVOICE_STATUSES
from ...security import roles_required
from . import admin_bp
from .projects import _get_project
from .utils import _parse_amount, _parse_currency, _parse_date, _require_text

log = logging.getLogger(__name__)

# statuses an invoice can be issued with
ISSUE_STATUSES = ("draft", "pending")


def _get_invoice(invoice_id) -> Invoice:
    inv = db.session.get(Invoice, invoice_id)
    if inv is None:
        raise NotFound('Invoice not found')
    return inv


@admin_bp.get('/projects/<project_id>/invoices')
@login_required
@roles_required('admin')
def invoices_list(project_id):
    project = _get_project(project_id)
    return jsonify([inv.to_dict() for inv in project.invoices])


@admin_bp.post('/projects/<project_id>/invoices')
@login_required
@roles_required('admin')
def invoices_create(project_id):
    project = _get_project(project_id)
    data = request.get_json(silent=True) or {}

    status = (data.get('status') or 'pending').strip()
    if status not in ISSUE_STATUSES:
        raise BadRequest("status must be 'draft' or 'pending'")

    inv = Invoice(
        project_id=project.id,
        title=_require_text(data, 'title', 200),
        amount=_parse_amount(data.get('amount')),
        currency=_parse_currency(data.get('currency')),
        status=status,
        due_date=_parse_date(data.get('due_date'), 'due_date'),
        payment_link=(data.get('payment_link') or '').strip() or None,
    )
    db.session.add(inv)
    db.session.commit()
    log.info("Invoice %s issued on project %s by %s", inv.id, project.id, current_user.id)
    return jsonify(inv.to_dict()), 201


@admin_bp.patch('/invoices/<invoice_id>')
@login_required
@roles_required('admin')
def invoices_update(invoice_id):
    inv = _get_invoice(invoice_id)
    data = request.get_json(silent=True) or {}

    billing_fields = {'amount', 'currency'} & set(data)
    if billing_fields and inv.gateway_order_id:
        # the gateway order was created for the old amount
        raise Conflict('Amount and currency are locked once a payment order exists.')

    if 'title' in data:
        inv.title = _require_text(data, 'title', 200)
    if 'amount' in data:
        inv.amount = _parse_amount(data.get('amount'))
    if 'currency' in data:
        inv.currency = _parse_currency(data.get('currency'))
    if 'due_date' in data:
        inv.due_date = _parse_date(data.get('due_date'), 'due_date')
    if 'payment_link' in data:
        inv.payment_link = (data.get('payment_link') or '').strip() or None

    if 'status' in data:
        # Manual override: outside the gateway state machine, touches status only
        status = (data.get('status') or '').strip()
        if status not in INVOICE_STATUSES:
            raise BadRequest(f"status must be one of: {', '.join(INVOICE_STATUSES)}")
        if status != inv.status:
            log.info("Invoice %s status %s -> %s (manual, by %s)", inv.id, inv.status, status, current_user.id)
        inv.status = status

    db.session.commit()
    return jsonify(inv.to_dict())


@admin_bp.delete('/invoices/<invoice_id>')
@login_required
@roles_required('admin')
def invoices_delete(invoice_id):
    inv = _get_invoice(invoice_id)
    if inv.gateway_order_id:
        raise Conflict('Invoices with a payment order cannot be deleted; cancel them instead.')
    db.session.delete(inv)
    db.session.commit()
    log.info("Invoice %s deleted by %s", invoice_id, current_user.id)
    return jsonify({"deleted": invoice_id})
