import hashlib
import hmac
import json
from decimal import Decimal

import pytest
from flask import g
from flask.testing import FlaskClient

from portal import create_app
from portal.config import TestConfig
from portal.errors import GatewayError
from portal.extensions import db
from portal.models import Invoice, Project, User
from portal.security import issue_api_token
from portal.services.razorpay_gateway import GatewayOrder, GatewaySettings

WEBHOOK_SECRET = TestConfig.RAZORPAY_WEBHOOK_SECRET
KEY_SECRET = TestConfig.RAZORPAY_KEY_SECRET


class FakeRazorpay:
    """Stands in for RazorpayClient; records every call."""

    def __init__(self, settings: GatewaySettings):
        self.settings = settings
        self.created = []
        self.payments = {}
        self.fail_with = None

    def create_order(self, *, amount_minor, currency, receipt, notes=None):
        if self.fail_with:
            raise self.fail_with
        self.created.append({"amount": amount_minor, "currency": currency,
                             "receipt": receipt, "notes": notes})
        return GatewayOrder(
            order_id=f"order_{len(self.created)}",
            amount_minor=amount_minor,
            currency=currency,
            status="created",
            receipt=receipt,
        )

    def fetch_order_payments(self, order_id):
        if self.fail_with:
            raise self.fail_with
        return list(self.payments.get(order_id, []))


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


class PortalClient(FlaskClient):
    """Test client that drops the cached login between requests.

    The fixture app context stays pushed for the whole test, so Flask reuses
    its ``g`` for every request made here.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        try:
            return super().open(*args, **kwargs)
        finally:
            g.pop("_login_user", None)


@pytest.fixture
def client(app):
    app.test_client_class = PortalClient
    return app.test_client()


@pytest.fixture
def fake_gateway(app):
    fake = FakeRazorpay(app.extensions["razorpay"].settings)
    app.extensions["razorpay"] = fake
    return fake


def _user(name, email, role="client"):
    u = User(name=name, email=email, role=role)
    u.set_password("s3cret-pass")
    db.session.add(u)
    return u


@pytest.fixture
def admin(app):
    u = _user("Ada Admin", "admin@agency.test", role="admin")
    db.session.commit()
    return u


@pytest.fixture
def client_user(app):
    u = _user("Carla Client", "carla@client.test")
    db.session.commit()
    return u


@pytest.fixture
def other_client(app):
    u = _user("Oscar Other", "oscar@other.test")
    db.session.commit()
    return u


@pytest.fixture
def project(client_user):
    p = Project(client_id=client_user.id, name="Lead routing automation")
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def make_invoice(project):
    def _make(**kw):
        fields = dict(project_id=project.id, title="Phase 1", amount=Decimal("150.00"),
                      currency="USD", status="pending")
        fields.update(kw)
        inv = Invoice(**fields)
        db.session.add(inv)
        db.session.commit()
        return inv.id
    return _make


@pytest.fixture
def invoice_id(make_invoice):
    return make_invoice()


def auth(user) -> dict:
    return {"Authorization": f"Bearer {issue_api_token(user)}"}


def reload(invoice_id) -> Invoice:
    db.session.expire_all()
    return db.session.get(Invoice, invoice_id)


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def captured_event(order_id, payment_id="pay_1", event="payment.captured", amount=15000) -> bytes:
    return json.dumps({
        "entity": "event",
        "event": event,
        "contains": ["payment"],
        "payload": {"payment": {"entity": {
            "id": payment_id,
            "entity": "payment",
            "order_id": order_id,
            "status": "captured",
            "amount": amount,
            "currency": "USD",
            "email": "carla@client.test",
            "contact": "+10000000000",
            "created_at": 1700000000,
        }}},
        "created_at": 1700000001,
    }).encode()


def gateway_error():
    return GatewayError("The api key provided is invalid", status=401)
