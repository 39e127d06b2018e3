"""
HMAC-SHA256 helpers for Razorpay checkout-proof and webhook signatures.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Any, Mapping, Optional, Union


WEBHOOK_SIGNATURE_HEADER = "x-razorpay-signature"


def compute_hmac_sha256(secret: str, message: Union[str, bytes]) -> str:
    payload = message.encode("utf-8") if isinstance(message, str) else message
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def checkout_signature(key_secret: str, order_id: str, payment_id: str) -> str:
    """Signature Razorpay Checkout hands back for `order_id|payment_id`."""
    return compute_hmac_sha256(key_secret, f"{order_id}|{payment_id}")


def verify_checkout_signature(key_secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    expected = checkout_signature(key_secret, order_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def verify_webhook_signature(webhook_secret: str, body: bytes, signature: Optional[str]) -> bool:
    if not signature:
        return False
    expected = compute_hmac_sha256(webhook_secret, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def get_header(headers: Optional[Mapping[str, Any]], name: str) -> Optional[str]:
    """Case-insensitive header lookup; list values yield their first element."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if not isinstance(key, str) or key.lower() != wanted:
            continue
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        if isinstance(value, str) and value:
            return value
    return None
