# portal/services/signatures.py
import hashlib, hmac, logging

log = logging.getLogger(__name__)


def _hmac(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_hmac(payload: bytes, signature: str, secret: str) -> bool:
    """HMAC-SHA256 over the exact raw bytes, compared as hex.

    Any failure while hashing (no secret, wrong types) counts as a mismatch.
    """
    try:
        if not secret or not signature:
            return False
        if isinstance(payload, str):
            payload = payload.encode()
        expected = _hmac(secret, payload)
        return hmac.compare_digest(expected, signature.strip().lower())
    except Exception as e:
        log.warning("Signature verification error: %s", e)
        return False


def verify_order_payment_pair(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Checkout-completion signature: HMAC-SHA256 of ``"<order_id>|<payment_id>"``."""
    try:
        message = f"{order_id}|{payment_id}".encode()
    except Exception as e:
        log.warning("Signature verification error: %s", e)
        return False
    return verify_hmac(message, signature, secret)
