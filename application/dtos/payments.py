"""
Payment DTOs (Pydantic v2) used at application boundaries.

`RazorpaySessionData` is the opaque bag the host stores between calls. The
host never interprets it; it only persists whatever the adapter returns.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.types import condecimal

from domain.payment.entity import PaymentSessionStatus, WebhookAction


class RazorpaySessionData(BaseModel):
    # Unknown keys from the host are dropped at the boundary
    model_config = ConfigDict(extra="ignore")

    order_id: Optional[str] = None
    amount_subunits: Optional[int] = None
    currency_code: Optional[str] = None
    notes: Optional[dict[str, Any]] = None

    # Checkout-proof, filled by update_payment after the client completes checkout
    payment_id: Optional[str] = None
    signature: Optional[str] = None

    # Last fetched gateway resources
    payment_snapshot: Optional[dict[str, Any]] = None
    order_snapshot: Optional[dict[str, Any]] = None

    @classmethod
    def coerce(cls, value: Union["RazorpaySessionData", Mapping[str, Any], None]) -> "RazorpaySessionData":
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value.model_copy(deep=True)
        return cls.model_validate(dict(value))

    def merge(self, **fields: Any) -> "RazorpaySessionData":
        """Return a copy with the given non-None fields applied; never clears a field."""
        update = {k: v for k, v in fields.items() if v is not None}
        return self.model_copy(update=update, deep=True)

    def has_checkout_proof(self) -> bool:
        return bool(self.order_id and self.payment_id and self.signature)

    def to_host(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class InitiateContext(BaseModel):
    model_config = ConfigDict(extra="ignore")

    idempotency_key: Optional[str] = None
    # Only non-sensitive identifier forwarded into gateway order notes
    customer_id: Optional[str] = None


class InitiatePaymentResult(BaseModel):
    id: str
    data: RazorpaySessionData


class PaymentSessionResult(BaseModel):
    data: RazorpaySessionData
    status: Optional[PaymentSessionStatus] = None


class PaymentStatusResult(BaseModel):
    status: PaymentSessionStatus


class WebhookActionData(BaseModel):
    # Gateway order id; matches RazorpaySessionData.order_id stored at initiation
    session_id: str = ""
    # Subunits as reported by the gateway
    amount: int = 0


class WebhookActionResult(BaseModel):
    action: WebhookAction
    data: WebhookActionData = Field(default_factory=WebhookActionData)


class WebhookPayload(BaseModel):
    """What the host hands over for one inbound webhook request."""
    model_config = ConfigDict(populate_by_name=True)

    data: Any = None
    raw_data: Optional[Union[bytes, str]] = Field(default=None, validation_alias=AliasChoices("raw_data", "rawData"))
    headers: dict[str, Any] = Field(default_factory=dict)


# Strict webhook body shape; parse falls back to generic lookups when it does not fit

class RazorpayPaymentEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    order_id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    status: Optional[str] = None


class RazorpayOrderEntity(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    status: Optional[str] = None


class RazorpayPaymentWrapper(BaseModel):
    entity: RazorpayPaymentEntity


class RazorpayOrderWrapper(BaseModel):
    entity: RazorpayOrderEntity


class RazorpayWebhookPayloadBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    payment: Optional[RazorpayPaymentWrapper] = None
    order: Optional[RazorpayOrderWrapper] = None


class RazorpayWebhookBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    event: Optional[str] = None
    event_type: Optional[str] = None
    payload: RazorpayWebhookPayloadBlock = Field(default_factory=RazorpayWebhookPayloadBlock)

    @property
    def event_name(self) -> Optional[str]:
        return self.event or self.event_type


# HTTP request bodies

class InitiateSessionRequest(BaseModel):
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency_code: Optional[str] = None
    context: Optional[InitiateContext] = None


class SessionRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)


class UpdateSessionRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    patch: dict[str, Any] = Field(default_factory=dict)


class RefundSessionRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    amount: Optional[Decimal] = None
