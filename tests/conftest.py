"""Pytest bootstrap configuration.

Ensure gateway credentials are set before test collection and module imports
that depend on payment settings, and provide an in-memory gateway fake.
"""
import os

os.environ.setdefault("RAZORPAY__KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY__KEY_SECRET", "rzp_test_secret")
os.environ.setdefault("PAYMENT__DEFAULT_PROVIDER", "razorpay")

import pytest

from infrastructure.external.payments.exceptions import PaymentRecoverableError


KEY_SECRET = "rzp_test_secret"
WEBHOOK_SECRET = "whsec_test"


class FakeGateway:
    """In-memory GatewayResourceClient recording every call."""

    provider = "razorpay"

    def __init__(self):
        self.calls = []
        self.orders = {}
        self.payments = {}
        self.fail_fetch = False
        self._seq = 0

    async def create_order(self, body):
        self.calls.append(("create_order", body))
        self._seq += 1
        order = {
            "id": f"order_{self._seq}",
            "entity": "order",
            "amount": body["amount"],
            "currency": body["currency"],
            "receipt": body["receipt"],
            "status": "created",
            "notes": body.get("notes", {}),
        }
        self.orders[order["id"]] = order
        return order

    async def fetch_order(self, order_id):
        self.calls.append(("fetch_order", order_id))
        if self.fail_fetch:
            raise PaymentRecoverableError("timeout", provider=self.provider)
        return dict(self.orders[order_id])

    async def fetch_payment(self, payment_id):
        self.calls.append(("fetch_payment", payment_id))
        if self.fail_fetch:
            raise PaymentRecoverableError("timeout", provider=self.provider)
        return dict(self.payments[payment_id])

    async def capture_payment(self, payment_id, amount, currency):
        self.calls.append(("capture_payment", payment_id, amount, currency))
        payment = dict(self.payments.get(payment_id, {"id": payment_id}))
        payment.update({"status": "captured", "amount": amount, "currency": currency, "captured": True})
        self.payments[payment_id] = payment
        return dict(payment)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def provider(gateway):
    from infrastructure.external.payments.razorpay_provider import RazorpayProvider

    return RazorpayProvider(
        {"key_id": "rzp_test_key", "key_secret": KEY_SECRET},
        client=gateway,
    )


@pytest.fixture
def webhook_provider(gateway):
    from infrastructure.external.payments.razorpay_provider import RazorpayProvider

    return RazorpayProvider(
        {"key_id": "rzp_test_key", "key_secret": KEY_SECRET, "webhook_secret": WEBHOOK_SECRET},
        client=gateway,
    )
