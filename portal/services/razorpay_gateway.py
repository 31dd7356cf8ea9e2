# portal/services/razorpay_gateway.py
from __future__ import annotations
import json, logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

import requests
from flask import current_app

from ..errors import ConfigurationError, GatewayError

log = logging.getLogger(__name__)

# Currencies the gateway bills without a fractional part.
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW"})


def _as_decimal(amount) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    try:
        # str() first so floats like 19.99 don't drag binary noise along
        return Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"invalid amount: {amount!r}")


def to_minor_units(amount, currency: str) -> int:
    """Major-unit amount -> integer in the smallest unit (paise, cents...)."""
    value = _as_decimal(amount)
    if not value.is_finite():
        raise ValueError(f"invalid amount: {amount!r}")
    if (currency or "").upper() not in ZERO_DECIMAL_CURRENCIES:
        value = value * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int, currency: str) -> Decimal:
    if (currency or "").upper() in ZERO_DECIMAL_CURRENCIES:
        return Decimal(int(amount_minor))
    return (Decimal(int(amount_minor)) / 100).quantize(Decimal("0.01"))


def _ts(value) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        raise ValueError(f"invalid timestamp: {value!r}")


def _require(data: dict, key: str, kind=str):
    val = data.get(key)
    if val is None or val == "" or not isinstance(val, kind) or isinstance(val, bool):
        raise ValueError(f"missing or invalid '{key}'")
    return val


def _optional(parse, *args):
    try:
        return parse(*args)
    except ValueError:
        return None


# -----------------
# Settings
# -----------------

@dataclass(frozen=True)
class GatewaySettings:
    key_id: Optional[str]
    key_secret: Optional[str] = field(repr=False)
    webhook_secret: Optional[str] = field(repr=False)
    api_base: str = "https://api.razorpay.com/v1"
    timeout: float = 20.0

    @classmethod
    def from_config(cls, config) -> "GatewaySettings":
        return cls(
            key_id=config.get("RAZORPAY_KEY_ID") or None,
            key_secret=config.get("RAZORPAY_KEY_SECRET") or None,
            webhook_secret=config.get("RAZORPAY_WEBHOOK_SECRET") or None,
            api_base=(config.get("RAZORPAY_API_BASE") or cls.api_base).rstrip("/"),
            timeout=float(config.get("RAZORPAY_TIMEOUT") or cls.timeout),
        )

    def require_credentials(self):
        if not self.key_id or not self.key_secret:
            log.error("Missing Razorpay credentials (RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET)")
            raise ConfigurationError()

    def require_key_secret(self) -> str:
        if not self.key_secret:
            log.error("Missing RAZORPAY_KEY_SECRET")
            raise ConfigurationError("Server configuration error")
        return self.key_secret

    def require_webhook_secret(self) -> str:
        if not self.webhook_secret:
            log.error("Webhook secret not configured")
            raise ConfigurationError("Webhook not configured")
        return self.webhook_secret


# -----------------
# Gateway-side objects
# -----------------

@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    amount_minor: int
    currency: str
    status: str
    receipt: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, data: dict) -> "GatewayOrder":
        if not isinstance(data, dict):
            raise ValueError("order payload is not an object")
        return cls(
            order_id=_require(data, "id"),
            amount_minor=_require(data, "amount", int),
            currency=_require(data, "currency").upper(),
            status=_require(data, "status"),
            receipt=data.get("receipt"),
            created_at=_ts(data.get("created_at")),
        )


@dataclass(frozen=True)
class GatewayPayment:
    payment_id: str
    order_id: Optional[str]
    status: Optional[str]
    amount_minor: Optional[int]
    currency: Optional[str]
    email: Optional[str] = None
    contact: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_captured(self) -> bool:
        return self.status == "captured"

    @classmethod
    def from_entity(cls, entity: dict) -> "GatewayPayment":
        if not isinstance(entity, dict):
            raise ValueError("payment entity is not an object")
        return cls(
            payment_id=_require(entity, "id"),
            order_id=_require(entity, "order_id"),
            status=_require(entity, "status"),
            amount_minor=_require(entity, "amount", int),
            currency=_require(entity, "currency").upper(),
            email=entity.get("email") or None,
            contact=entity.get("contact") or None,
            created_at=_ts(entity.get("created_at")),
        )

    @classmethod
    def from_webhook_entity(cls, entity: dict) -> "GatewayPayment":
        """Lenient parse for event bodies: only ``id`` is required.

        Unreadable optional fields come back as None; an entity without an
        ``order_id`` matches no invoice.
        """
        if not isinstance(entity, dict):
            raise ValueError("payment entity is not an object")
        currency = _optional(_require, entity, "currency")
        return cls(
            payment_id=_require(entity, "id"),
            order_id=_optional(_require, entity, "order_id"),
            status=_optional(_require, entity, "status"),
            amount_minor=_optional(_require, entity, "amount", int),
            currency=currency.upper() if currency else None,
            email=_optional(_require, entity, "email"),
            contact=_optional(_require, entity, "contact"),
            created_at=_optional(_ts, entity.get("created_at")),
        )


@dataclass(frozen=True)
class WebhookEvent:
    event: str
    payload: dict = field(default_factory=dict, repr=False)

    @classmethod
    def parse(cls, raw_body: bytes) -> "WebhookEvent":
        """Parse the envelope of an already-authenticated webhook body.

        Raises ValueError for anything that is not a JSON object with an
        ``event`` name. Entities inside ``payload`` are validated on demand.
        """
        try:
            data = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise ValueError(f"unparseable webhook body: {e}")
        if not isinstance(data, dict):
            raise ValueError("webhook body is not an object")

        event = _require(data, "event")
        payload = data.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError("'payload' is not an object")
        return cls(event=event, payload=payload)

    def payment(self) -> GatewayPayment:
        wrapper = self.payload.get("payment")
        if not isinstance(wrapper, dict):
            raise ValueError("'payload.payment' is missing")
        return GatewayPayment.from_webhook_entity(wrapper.get("entity"))


# -----------------
# HTTP client
# -----------------

class RazorpayClient:
    """Thin wrapper over the Razorpay Orders/Payments REST API (basic auth)."""

    def __init__(self, settings: GatewaySettings):
        self.settings = settings

    def _request(self, method: str, path: str, **kwargs) -> dict:
        self.settings.require_credentials()
        url = f"{self.settings.api_base}{path}"
        try:
            r = requests.request(
                method,
                url,
                auth=(self.settings.key_id, self.settings.key_secret),
                headers={"Accept": "application/json", "Content-Type": "application/json"},
                timeout=self.settings.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            log.error("Razorpay %s %s failed: %s", method, path, e)
            raise GatewayError(f"request failed: {e.__class__.__name__}")

        log.info("Razorpay %s %s status=%s", method, path, r.status_code)
        if r.status_code >= 400:
            try:
                description = (r.json().get("error") or {}).get("description")
            except (ValueError, AttributeError):
                description = None
            log.error("Razorpay error %s | %s", r.status_code, description or r.text[:200])
            raise GatewayError(description or "Unknown error", status=r.status_code)

        try:
            return r.json()
        except ValueError:
            raise GatewayError("non-JSON response", status=r.status_code)

    def create_order(self, *, amount_minor: int, currency: str, receipt: str,
                     notes: dict | None = None) -> GatewayOrder:
        payload = {
            "amount": int(amount_minor),
            "currency": (currency or "INR").upper(),
            "receipt": str(receipt)[:40],  # gateway limit
            "notes": {k: str(v) for k, v in (notes or {}).items() if v is not None},
        }
        data = self._request("POST", "/orders", json=payload)
        try:
            order = GatewayOrder.from_payload(data)
        except ValueError as e:
            raise GatewayError(f"malformed order response: {e}")
        log.info("Razorpay order created id=%s receipt=%s amount=%s %s",
                 order.order_id, receipt, order.amount_minor, order.currency)
        return order

    def fetch_order_payments(self, order_id: str) -> list[GatewayPayment]:
        data = self._request("GET", f"/orders/{order_id}/payments")
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise GatewayError("malformed payments response")
        payments = []
        for item in items:
            try:
                payments.append(GatewayPayment.from_entity(item))
            except ValueError as e:
                log.warning("Skipping malformed payment on order=%s: %s", order_id, e)
        return payments


def init_app(app):
    app.extensions["razorpay"] = RazorpayClient(GatewaySettings.from_config(app.config))


def gateway() -> RazorpayClient:
    return current_app.extensions["razorpay"]
