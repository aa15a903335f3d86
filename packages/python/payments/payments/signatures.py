"""HMAC-SHA256 signatures used by the gateway for checkout callbacks and webhooks."""

from __future__ import annotations

import hashlib
import hmac
from typing import Optional


def compute_signature(secret: str, message: bytes | str) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _matches(expected: str, supplied: Optional[str]) -> bool:
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.strip().encode("utf-8"))


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: Optional[str],
    key_secret: str,
) -> bool:
    """Check ``signature == hex(HMAC-SHA256(key_secret, "order_id|payment_id"))``."""

    if not key_secret:
        return False
    return _matches(compute_signature(key_secret, f"{order_id}|{payment_id}"), signature)


def verify_webhook_signature(body: bytes, signature: Optional[str], webhook_secret: str) -> bool:
    """Check a webhook signature computed over the raw, unparsed request body."""

    if not webhook_secret:
        return False
    return _matches(compute_signature(webhook_secret, body), signature)
