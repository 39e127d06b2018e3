"""
Payment specific codes and gateway status/event mapping tables.

The tables are the only place where Razorpay vocabulary is translated into
host vocabulary; call sites look values up instead of branching on them.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    PROVIDER_RECOVERABLE = 60001
    SIGNATURE_ERROR = 60002

    # Adapter contract errors
    NOT_SUPPORTED = 60003
    INVALID_INPUT = 60004


# Fallback when a gateway value is missing from a table below
DEFAULT_HOST_STATUS = "pending"
DEFAULT_WEBHOOK_ACTION = "not_supported"

# Gateway resource status -> host payment session status
PROVIDER_STATUS_TO_INTERNAL = {
    "razorpay.payment": {
        # Per payment.status; created/refunded etc. fall back to pending
        "captured": "captured",
        "authorized": "authorized",
        "failed": "canceled",
    },
    "razorpay.order": {
        # Per order.status (created | attempted | paid)
        "paid": "captured",
    },
}

# Webhook event name -> host webhook action
WEBHOOK_EVENT_TO_ACTION = {
    "razorpay": {
        "payment.authorized": "authorized",
        "payment.captured": "captured",
        "order.paid": "captured",
        "payment.failed": "canceled",
    },
}
