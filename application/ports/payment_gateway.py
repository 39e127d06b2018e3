"""
Payment gateway ports (application/ports) exposing replaceable protocols.

`PaymentProvider` is the contract the host order/checkout system invokes, one
call per lifecycle event. `GatewayResourceClient` is the narrow set of remote
order/payment operations a provider needs; infrastructure implements both.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, NoReturn, Optional, Protocol, Union, runtime_checkable

from application.dtos.payments import (
    InitiateContext,
    InitiatePaymentResult,
    PaymentSessionResult,
    PaymentStatusResult,
    RazorpaySessionData,
    WebhookActionResult,
    WebhookPayload,
)


SessionInput = Union[RazorpaySessionData, Mapping[str, Any], None]


@runtime_checkable
class GatewayResourceClient(Protocol):
    """Remote order/payment resources. Implementations bound every call by a timeout."""

    provider: str

    async def create_order(self, body: dict[str, Any]) -> dict[str, Any]: ...

    async def fetch_order(self, order_id: str) -> dict[str, Any]: ...

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]: ...

    async def capture_payment(self, payment_id: str, amount: int, currency: str) -> dict[str, Any]: ...


@runtime_checkable
class PaymentProvider(Protocol):
    """Payment session contract invoked by the host.

    Every method takes the session data the host stored and returns the data
    the host must store next. Implementations hold no per-session state.
    """

    provider: str

    async def initiate(
        self,
        amount: Any,
        currency_code: Optional[str] = None,
        context: Union[InitiateContext, Mapping[str, Any], None] = None,
    ) -> InitiatePaymentResult: ...

    async def update_payment(self, data: SessionInput, patch: Mapping[str, Any]) -> PaymentSessionResult: ...

    async def authorize(self, data: SessionInput) -> PaymentSessionResult: ...

    async def capture(self, data: SessionInput) -> PaymentSessionResult: ...

    async def cancel(self, data: SessionInput) -> PaymentSessionResult: ...

    async def delete_payment(self, data: SessionInput) -> PaymentSessionResult: ...

    async def retrieve(self, data: SessionInput) -> PaymentSessionResult: ...

    async def get_status(self, data: SessionInput) -> PaymentStatusResult: ...

    async def refund(self, data: SessionInput, amount: Optional[Decimal] = None) -> NoReturn: ...

    async def handle_webhook(
        self,
        payload: Union[WebhookPayload, Mapping[str, Any], bytes, str, None],
        headers: Optional[Mapping[str, Any]] = None,
    ) -> WebhookActionResult: ...
