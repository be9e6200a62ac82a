"""
Przelewy24 Signer - sign digests mandated by the gateway protocol.

The field order and the MD5 digest are fixed by the gateway; the gateway
recomputes the same string on its side, so neither may change here.
"""

import hashlib
import hmac

WEBHOOK_SIGNATURE_PREFIX = "sha256="


def _digest(*fields: object) -> str:
    sign_string = "|".join(str(field) for field in fields)
    return hashlib.md5(sign_string.encode("utf-8"), usedforsecurity=False).hexdigest()


def registration_digest(
    session_id: str, merchant_id: int, amount_minor: int, currency: str, secret: str
) -> str:
    """Sign for transaction registration: sessionId|merchantId|amount|currency|crc."""
    return _digest(session_id, merchant_id, amount_minor, currency, secret)


def verification_digest(
    session_id: str, order_id: int, amount_minor: int, currency: str, secret: str
) -> str:
    """Sign for transaction verification: sessionId|orderId|amount|currency|crc."""
    return _digest(session_id, order_id, amount_minor, currency, secret)


def webhook_signature(body: bytes, secret: str) -> str:
    """Value of the X-Webhook-Signature header for a raw body."""
    mac = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{WEBHOOK_SIGNATURE_PREFIX}{mac}"


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """Constant-time check of an X-Webhook-Signature header against the raw body."""
    if not signature.startswith(WEBHOOK_SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(webhook_signature(body, secret), signature)
