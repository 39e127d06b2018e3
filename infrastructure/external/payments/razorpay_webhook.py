"""
Tolerant decoding of Razorpay webhook deliveries.

The body is loosely typed and partially untrusted. Decoding first tries the
strict `RazorpayWebhookBody` schema and, when the shape does not fit, falls
back to optional-path lookups over a plain mapping. Nothing here raises on a
malformed body; callers get empty values instead.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from application.dtos.payments import RazorpayWebhookBody


@dataclass(frozen=True)
class WebhookFields:
    event: Optional[str]
    session_id: str
    amount: int


def resolve_body_bytes(raw: Optional[Union[bytes, str]], structured: Any) -> bytes:
    """Bytes the signature is computed over: raw body if present, else compact JSON."""
    if isinstance(raw, bytes):
        return raw
    if isinstance(raw, str):
        return raw.encode("utf-8")
    return json.dumps(
        structured if structured is not None else {},
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    ).encode("utf-8")


def coerce_body(structured: Any, raw: Optional[Union[bytes, str]]) -> dict[str, Any]:
    if isinstance(structured, Mapping):
        return dict(structured)
    text = raw if raw is not None else structured
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError:
            return {}
    if isinstance(text, str):
        try:
            parsed = json.loads(text)
        except (ValueError, RecursionError):
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def extract_fields(body: Mapping[str, Any]) -> WebhookFields:
    try:
        parsed = RazorpayWebhookBody.model_validate(body)
    except ValidationError:
        return _extract_generic(body)

    payment = parsed.payload.payment.entity if parsed.payload.payment else None
    order = parsed.payload.order.entity if parsed.payload.order else None
    session_id = (payment.order_id if payment else None) or (order.id if order else None) or ""
    amounts = [entity.amount for entity in (payment, order) if entity is not None and entity.amount is not None]
    return WebhookFields(event=parsed.event_name, session_id=session_id, amount=amounts[0] if amounts else 0)


def _extract_generic(body: Mapping[str, Any]) -> WebhookFields:
    event = _dig(body, "event") or _dig(body, "event_type")
    payment = _dig(body, "payload", "payment", "entity")
    order = _dig(body, "payload", "order", "entity")

    session_id = _as_str(_dig(payment, "order_id")) or _as_str(_dig(order, "id")) or ""
    amount_raw = _dig(payment, "amount")
    if amount_raw is None:
        amount_raw = _dig(order, "amount")
    return WebhookFields(
        event=event if isinstance(event, str) else None,
        session_id=session_id,
        amount=_to_int(amount_raw),
    )


def _dig(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(key)
    return obj


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _to_int(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return 0
        return int(number) if number.is_finite() else 0
    return 0
