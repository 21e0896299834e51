"""Provider signature checks — the trust anchor for client-submitted payment claims.

Two signatures are in play:
  - checkout callback: HMAC-SHA256(key_secret, "{provider_order_id}|{provider_payment_id}")
  - webhook delivery:  HMAC-SHA256(webhook_secret, raw request body)
Both are lowercase hex and compared in constant time.

Malformed input never raises; only a missing secret does, since that is a
deployment error that must surface at startup rather than as a 400.
"""

import hashlib
import hmac


def _hex_hmac(secret: str, message: bytes) -> str:
    if not secret:
        raise ValueError("Signing secret is not configured")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _matches(expected: str, claimed: object) -> bool:
    if not isinstance(claimed, str) or not claimed:
        return False
    try:
        claimed_bytes = claimed.encode("ascii")
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected.encode("ascii"), claimed_bytes)


def compute_payment_signature(
    provider_order_id: str, provider_payment_id: str, secret: str
) -> str:
    message = f"{provider_order_id}|{provider_payment_id}".encode()
    return _hex_hmac(secret, message)


def verify_payment_signature(
    provider_order_id: str,
    provider_payment_id: str,
    claimed_signature: object,
    secret: str,
) -> bool:
    expected = compute_payment_signature(provider_order_id, provider_payment_id, secret)
    if not provider_order_id or not provider_payment_id:
        return False
    return _matches(expected, claimed_signature)


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    return _hex_hmac(secret, raw_body)


def verify_webhook_signature(raw_body: bytes, claimed_signature: object, secret: str) -> bool:
    return _matches(compute_webhook_signature(raw_body, secret), claimed_signature)
