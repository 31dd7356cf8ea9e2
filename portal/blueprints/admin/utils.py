# portal/blueprints/admin/utils.py
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from ...errors import BadRequest

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def _parse_date(val, field: str) -> Optional[date]:
    if val in (None, ""):
        return None
    try:
        # Accept both YYYY-MM-DD and full ISO strings
        return date.fromisoformat(str(val)[:10])
    except ValueError:
        raise BadRequest(f"{field} must be an ISO date (YYYY-MM-DD)")


def _parse_amount(val) -> Decimal:
    try:
        amount = Decimal(str(val).strip())
    except (InvalidOperation, ValueError):
        raise BadRequest("amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise BadRequest("amount must be greater than zero")
    if amount.as_tuple().exponent < -2:
        raise BadRequest("amount can have at most 2 decimal places")
    return amount


def _parse_currency(val) -> str:
    cur = (val or "USD").strip().upper()
    if not _CURRENCY_RE.match(cur):
        raise BadRequest("currency must be a 3-letter ISO 4217 code")
    return cur


def _require_text(data: dict, field: str, max_len: int) -> str:
    val = (data.get(field) or "").strip()
    if not val:
        raise BadRequest(f"{field} is required")
    return val[:max_len]
