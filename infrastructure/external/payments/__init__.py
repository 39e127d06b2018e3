"""
Factory for payment session providers.
"""
from __future__ import annotations

from typing import Optional

from core.settings import payment_settings
from application.ports.payment_gateway import PaymentProvider


def get_payment_provider(provider: Optional[str] = None) -> PaymentProvider:
    name = (provider or payment_settings.default_provider).lower()
    if name in {"razorpay", "rzp"}:
        from .razorpay_provider import RazorpayProvider
        cfg = payment_settings.razorpay
        return RazorpayProvider(
            {
                "key_id": cfg.key_id,
                "key_secret": cfg.key_secret,
                "webhook_secret": cfg.webhook_secret,
                "auto_capture": cfg.auto_capture,
            }
        )
    raise ValueError(f"Unsupported payment provider: {name}")
