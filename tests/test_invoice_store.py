from datetime import datetime

import pytest

from portal.errors import NotFound
from portal.services import invoice_store

from conftest import reload


def test_get_invoice_with_project_owner(invoice_id, client_user):
    invoice, owner_id = invoice_store.get_invoice_with_project_owner(invoice_id)
    assert invoice.id == invoice_id
    assert owner_id == client_user.id


def test_get_missing_invoice(app):
    with pytest.raises(NotFound):
        invoice_store.get_invoice_with_project_owner("does-not-exist")


def test_set_gateway_order_only_once(invoice_id):
    assert invoice_store.set_gateway_order(invoice_id, "order_1") is True
    assert invoice_store.set_gateway_order(invoice_id, "order_2") is False

    inv = reload(invoice_id)
    assert inv.gateway_order_id == "order_1"
    assert inv.status == "pending"


def test_set_gateway_order_moves_draft_to_pending(make_invoice):
    inv_id = make_invoice(status="draft")
    invoice_store.set_gateway_order(inv_id, "order_d")
    assert reload(inv_id).status == "pending"


def test_set_gateway_order_refused_for_paid_invoice(make_invoice):
    inv_id = make_invoice(status="paid")
    assert invoice_store.set_gateway_order(inv_id, "order_x") is False
    assert reload(inv_id).gateway_order_id is None


def test_find_by_gateway_order_id(invoice_id):
    invoice_store.set_gateway_order(invoice_id, "order_1")
    assert invoice_store.find_by_gateway_order_id("order_1").id == invoice_id
    assert invoice_store.find_by_gateway_order_id("order_unknown") is None
    assert invoice_store.find_by_gateway_order_id("") is None


def test_mark_paid_sets_all_payment_fields_once(invoice_id):
    when = datetime(2026, 1, 2, 3, 4, 5)
    assert invoice_store.mark_paid(invoice_id, "pay_1", when) is True
    assert invoice_store.mark_paid(invoice_id, "pay_1", datetime(2026, 2, 1)) is False
    assert invoice_store.mark_paid(invoice_id, "pay_2") is False

    inv = reload(invoice_id)
    assert inv.status == "paid"
    assert inv.gateway_payment_id == "pay_1"
    assert inv.paid_at == when
