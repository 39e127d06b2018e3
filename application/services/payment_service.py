"""
Application service orchestrating payment session use-cases.

This class depends only on the application PaymentProvider port and DTOs.
Provider implementations are supplied by infrastructure and injected from the
composition root (API), keeping dependencies one-way. Each method maps to one
host lifecycle event.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, NoReturn, Optional, Union

from application.dtos.payments import (
    InitiateContext,
    InitiatePaymentResult,
    PaymentSessionResult,
    PaymentStatusResult,
    WebhookActionResult,
    WebhookPayload,
)
from application.ports.payment_gateway import PaymentProvider, SessionInput
from core.logging_config import get_logger


logger = get_logger(__name__)


def _order_id(data: SessionInput) -> Optional[str]:
    if data is None:
        return None
    value = getattr(data, "order_id", None)
    if value is None and isinstance(data, Mapping):
        value = data.get("order_id")
    return value if isinstance(value, str) else None


class PaymentService:
    def __init__(self, provider: PaymentProvider) -> None:
        self.provider = provider

    async def initiate(
        self,
        amount: Any,
        currency_code: Optional[str] = None,
        context: Union[InitiateContext, Mapping[str, Any], None] = None,
    ) -> InitiatePaymentResult:
        logger.info(
            "payment_initiate_request",
            provider=self.provider.provider,
            amount=str(amount),
            currency=currency_code,
        )
        result = await self.provider.initiate(amount, currency_code, context)
        logger.info(
            "payment_initiate_response",
            provider=self.provider.provider,
            session_id=result.id,
            amount_subunits=result.data.amount_subunits,
        )
        return result

    async def update_payment(self, data: SessionInput, patch: Mapping[str, Any]) -> PaymentSessionResult:
        logger.info(
            "payment_update_request",
            provider=self.provider.provider,
            order_id=_order_id(data),
            fields=sorted(k for k in (patch or {}) if isinstance(k, str)),
        )
        return await self.provider.update_payment(data, patch)

    async def authorize(self, data: SessionInput) -> PaymentSessionResult:
        logger.info("payment_authorize_request", provider=self.provider.provider, order_id=_order_id(data))
        result = await self.provider.authorize(data)
        logger.info(
            "payment_authorize_response",
            provider=self.provider.provider,
            order_id=result.data.order_id,
            status=result.status.value if result.status else None,
        )
        return result

    async def capture(self, data: SessionInput) -> PaymentSessionResult:
        logger.info("payment_capture_request", provider=self.provider.provider, order_id=_order_id(data))
        return await self.provider.capture(data)

    async def cancel(self, data: SessionInput) -> PaymentSessionResult:
        logger.info("payment_cancel_request", provider=self.provider.provider, order_id=_order_id(data))
        return await self.provider.cancel(data)

    async def delete_payment(self, data: SessionInput) -> PaymentSessionResult:
        logger.info("payment_delete_request", provider=self.provider.provider, order_id=_order_id(data))
        return await self.provider.delete_payment(data)

    async def retrieve(self, data: SessionInput) -> PaymentSessionResult:
        logger.info("payment_retrieve_request", provider=self.provider.provider, order_id=_order_id(data))
        return await self.provider.retrieve(data)

    async def get_status(self, data: SessionInput) -> PaymentStatusResult:
        result = await self.provider.get_status(data)
        logger.info(
            "payment_status_polled",
            provider=self.provider.provider,
            order_id=_order_id(data),
            status=result.status.value,
        )
        return result

    async def refund(self, data: SessionInput, amount: Optional[Decimal] = None) -> NoReturn:
        logger.info("payment_refund_request", provider=self.provider.provider, order_id=_order_id(data))
        await self.provider.refund(data, amount)

    async def handle_webhook(
        self,
        payload: Union[WebhookPayload, Mapping[str, Any], bytes, str, None],
        headers: Optional[Mapping[str, Any]] = None,
    ) -> WebhookActionResult:
        result = await self.provider.handle_webhook(payload, headers)
        logger.info(
            "payment_webhook_parsed",
            provider=self.provider.provider,
            action=result.action.value,
            session_id=result.data.session_id,
        )
        return result

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.provider, "aclose", None)
        if callable(close):
            await close()
