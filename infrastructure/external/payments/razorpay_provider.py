"""
Razorpay payment session adapter.

Tracks a single payment attempt from order creation to capture. The adapter
keeps nothing between calls: the host passes the session data in and stores
whatever comes back. Two paths can complete a session:

- checkout return: the client posts `payment_id` + `signature` through
  `update_payment`, then `authorize` verifies the HMAC and fetches the payment;
- webhook: Razorpay posts an event, `handle_webhook` verifies the body HMAC and
  reports an action keyed by the gateway order id.

Either path may arrive first or both may arrive; results are merges and are
safe to apply more than once.
"""
from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Mapping, NoReturn, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from application.dtos.payments import (
    InitiateContext,
    InitiatePaymentResult,
    PaymentSessionResult,
    PaymentStatusResult,
    RazorpaySessionData,
    WebhookActionData,
    WebhookActionResult,
    WebhookPayload,
)
from application.ports.payment_gateway import GatewayResourceClient, SessionInput
from core.logging_config import get_logger
from domain.common.exceptions import DomainValidationException
from domain.payment.entity import (
    DEFAULT_CURRENCY,
    PaymentSessionStatus,
    WebhookAction,
    normalize_currency,
    resolve_host_status,
    resolve_webhook_action,
    to_subunits,
)
from infrastructure.external.payments.exceptions import (
    PaymentInvalidInputError,
    PaymentNotSupportedError,
    PaymentProviderError,
    PaymentRecoverableError,
    PaymentSignatureError,
)
from infrastructure.external.payments.razorpay_webhook import (
    coerce_body,
    extract_fields,
    resolve_body_bytes,
)
from infrastructure.external.payments.signatures import (
    WEBHOOK_SIGNATURE_HEADER,
    get_header,
    verify_checkout_signature,
    verify_webhook_signature,
)


logger = get_logger(__name__)

# Remote read failures that degrade to pending/unchanged state instead of raising
_FETCH_ERRORS = (PaymentRecoverableError, PaymentProviderError)

# Fields a client may patch into the session, with Razorpay Checkout callback aliases
_PATCH_FIELDS = {
    "order_id": "order_id",
    "razorpay_order_id": "order_id",
    "payment_id": "payment_id",
    "razorpay_payment_id": "payment_id",
    "signature": "signature",
    "razorpay_signature": "signature",
}


class RazorpayOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    key_id: Optional[str] = None
    key_secret: Optional[str] = None
    webhook_secret: Optional[str] = None
    auto_capture: bool = True


class RazorpayProvider:
    provider = "razorpay"

    def __init__(
        self,
        options: Union[RazorpayOptions, Mapping[str, Any]],
        *,
        client: Optional[GatewayResourceClient] = None,
    ) -> None:
        opts = options if isinstance(options, RazorpayOptions) else RazorpayOptions.model_validate(dict(options))
        self.validate_options(opts)
        self._options = opts
        if client is None:
            from infrastructure.external.payments.razorpay_api import RazorpayApiClient

            client = RazorpayApiClient(opts.key_id, opts.key_secret)  # type: ignore[arg-type]
        self._client = client

    @classmethod
    def validate_options(cls, options: Union[RazorpayOptions, Mapping[str, Any]]) -> None:
        key_id = options.key_id if isinstance(options, RazorpayOptions) else options.get("key_id")
        key_secret = options.key_secret if isinstance(options, RazorpayOptions) else options.get("key_secret")
        if not key_id or not key_secret:
            raise PaymentInvalidInputError(
                "Razorpay: key_id and key_secret are required",
                provider=cls.provider,
                field="key_id" if not key_id else "key_secret",
            )

    @property
    def options(self) -> RazorpayOptions:
        return self._options

    @property
    def auto_capture(self) -> bool:
        return self._options.auto_capture

    async def aclose(self) -> None:
        close = getattr(self._client, "aclose", None)
        if callable(close):
            await close()

    # Lifecycle operations

    async def initiate(
        self,
        amount: Any,
        currency_code: Optional[str] = None,
        context: Union[InitiateContext, Mapping[str, Any], None] = None,
    ) -> InitiatePaymentResult:
        try:
            amount_subunits = to_subunits(amount)
        except DomainValidationException as exc:
            raise PaymentInvalidInputError(
                f"Razorpay: {exc.message}",
                provider=self.provider,
                field="amount",
                details=exc.details,
            ) from exc

        ctx = context if isinstance(context, InitiateContext) else InitiateContext.model_validate(dict(context or {}))
        currency = normalize_currency(currency_code)
        receipt = ctx.idempotency_key or f"receipt_{int(time.time() * 1000)}"

        order = await self._client.create_order(
            {
                "amount": amount_subunits,
                "currency": currency,
                "receipt": receipt,
                "notes": {"customer_id": ctx.customer_id or ""},
            }
        )
        order_id = order.get("id")
        if not isinstance(order_id, str) or not order_id:
            raise PaymentProviderError("Razorpay: order response has no id", provider=self.provider)

        notes = order.get("notes")
        data = RazorpaySessionData(
            order_id=order_id,
            amount_subunits=amount_subunits,
            currency_code=currency,
            notes=notes if isinstance(notes, dict) else None,
        )
        logger.info(
            "razorpay_order_created",
            order_id=order_id,
            amount_subunits=amount_subunits,
            currency=currency,
            receipt=receipt,
        )
        return InitiatePaymentResult(id=order_id, data=data)

    async def update_payment(self, data: SessionInput, patch: Mapping[str, Any]) -> PaymentSessionResult:
        session = self._session(data)
        accepted = self._whitelist(patch)

        patched_order_id = accepted.pop("order_id", None)
        if patched_order_id is not None:
            if not session.order_id:
                accepted["order_id"] = patched_order_id
            elif patched_order_id != session.order_id:
                logger.warning(
                    "razorpay_update_order_id_ignored",
                    order_id=session.order_id,
                    patched_order_id=patched_order_id,
                )
        return PaymentSessionResult(data=session.merge(**accepted))

    async def authorize(self, data: SessionInput) -> PaymentSessionResult:
        session = self._session(data)
        if not session.has_checkout_proof():
            # No client-side proof yet; a webhook will move the session forward
            return PaymentSessionResult(data=session, status=PaymentSessionStatus.PENDING)

        if not self._proof_verifies(session):
            logger.warning(
                "razorpay_checkout_signature_invalid",
                order_id=session.order_id,
                payment_id=session.payment_id,
            )
            raise PaymentSignatureError(
                "Razorpay: signature verification failed",
                provider=self.provider,
                details={"order_id": session.order_id, "payment_id": session.payment_id},
            )

        try:
            payment = await self._client.fetch_payment(session.payment_id)  # type: ignore[arg-type]
        except _FETCH_ERRORS as exc:
            logger.error(
                "razorpay_authorize_fetch_failed",
                order_id=session.order_id,
                payment_id=session.payment_id,
                error=exc.message,
                error_type=exc.error_type,
            )
            return PaymentSessionResult(data=session, status=PaymentSessionStatus.PENDING)

        status = resolve_host_status("razorpay.payment", payment.get("status"))
        logger.info(
            "razorpay_payment_authorized",
            order_id=session.order_id,
            payment_id=session.payment_id,
            gateway_status=payment.get("status"),
            status=status.value,
        )
        return PaymentSessionResult(data=session.merge(payment_snapshot=payment), status=status)

    async def capture(self, data: SessionInput) -> PaymentSessionResult:
        session = self._session(data)
        payment_id = self._trusted_payment_id(session)
        if not payment_id:
            raise PaymentInvalidInputError(
                "Razorpay: cannot capture without a verified payment id",
                provider=self.provider,
                field="payment_id",
            )
        amount = session.amount_subunits
        if not amount or amount <= 0:
            raise PaymentInvalidInputError(
                "Razorpay: capture requires amount_subunits > 0 saved at initiation",
                provider=self.provider,
                field="amount_subunits",
            )
        currency = session.currency_code or DEFAULT_CURRENCY

        captured = await self._client.capture_payment(payment_id, amount, currency)
        status = resolve_host_status("razorpay.payment", captured.get("status"))
        logger.info(
            "razorpay_payment_captured",
            order_id=session.order_id,
            payment_id=payment_id,
            amount_subunits=amount,
            currency=currency,
            status=status.value,
        )
        return PaymentSessionResult(data=session.merge(payment_snapshot=captured), status=status)

    async def cancel(self, data: SessionInput) -> PaymentSessionResult:
        # Razorpay has no order cancellation; unpaid orders simply expire
        return PaymentSessionResult(data=self._session(data))

    async def delete_payment(self, data: SessionInput) -> PaymentSessionResult:
        return PaymentSessionResult(data=self._session(data))

    async def retrieve(self, data: SessionInput) -> PaymentSessionResult:
        session = self._session(data)
        payment_id = self._trusted_payment_id(session)
        try:
            if payment_id:
                payment = await self._client.fetch_payment(payment_id)
                return PaymentSessionResult(data=session.merge(payment_snapshot=payment))
            if session.order_id:
                order = await self._client.fetch_order(session.order_id)
                return PaymentSessionResult(data=session.merge(order_snapshot=order))
        except _FETCH_ERRORS as exc:
            logger.error(
                "razorpay_retrieve_failed",
                order_id=session.order_id,
                payment_id=payment_id,
                error=exc.message,
                error_type=exc.error_type,
            )
        return PaymentSessionResult(data=session)

    async def get_status(self, data: SessionInput) -> PaymentStatusResult:
        try:
            session = self._session(data)
        except PaymentInvalidInputError:
            return PaymentStatusResult(status=PaymentSessionStatus.PENDING)

        payment_id = self._trusted_payment_id(session)
        try:
            if payment_id:
                payment = await self._client.fetch_payment(payment_id)
                return PaymentStatusResult(status=resolve_host_status("razorpay.payment", payment.get("status")))
            if session.order_id:
                order = await self._client.fetch_order(session.order_id)
                return PaymentStatusResult(status=resolve_host_status("razorpay.order", order.get("status")))
        except _FETCH_ERRORS as exc:
            logger.warning(
                "razorpay_status_fetch_failed",
                order_id=session.order_id,
                payment_id=payment_id,
                error=exc.message,
            )
        return PaymentStatusResult(status=PaymentSessionStatus.PENDING)

    async def refund(self, data: SessionInput = None, amount: Optional[Decimal] = None) -> NoReturn:
        raise PaymentNotSupportedError(
            "Razorpay: refunds are not supported",
            provider=self.provider,
            operation="refund",
        )

    async def handle_webhook(
        self,
        payload: Union[WebhookPayload, Mapping[str, Any], bytes, str, None],
        headers: Optional[Mapping[str, Any]] = None,
    ) -> WebhookActionResult:
        envelope = self._envelope(payload, headers)

        if self._options.webhook_secret:
            body = resolve_body_bytes(envelope.raw_data, envelope.data)
            signature = get_header(envelope.headers, WEBHOOK_SIGNATURE_HEADER)
            if not verify_webhook_signature(self._options.webhook_secret, body, signature):
                logger.warning(
                    "razorpay_webhook_signature_invalid",
                    has_signature=bool(signature),
                    body_bytes=len(body),
                )
                return WebhookActionResult(action=WebhookAction.FAILED, data=WebhookActionData())

        fields = extract_fields(coerce_body(envelope.data, envelope.raw_data))
        action = resolve_webhook_action(self.provider, fields.event)
        logger.info(
            "razorpay_webhook_received",
            webhook_event=fields.event,
            action=action.value,
            session_id=fields.session_id,
            amount=fields.amount,
        )
        return WebhookActionResult(
            action=action,
            data=WebhookActionData(session_id=fields.session_id, amount=fields.amount),
        )

    # Helpers

    def _session(self, data: SessionInput) -> RazorpaySessionData:
        try:
            return RazorpaySessionData.coerce(data)
        except (ValidationError, TypeError, ValueError) as exc:
            raise PaymentInvalidInputError(
                "Razorpay: malformed session data",
                provider=self.provider,
                details={"error": str(exc)},
            ) from exc

    def _proof_verifies(self, session: RazorpaySessionData) -> bool:
        if not session.has_checkout_proof():
            return False
        return verify_checkout_signature(
            self._options.key_secret,  # type: ignore[arg-type]
            session.order_id,  # type: ignore[arg-type]
            session.payment_id,  # type: ignore[arg-type]
            session.signature,  # type: ignore[arg-type]
        )

    def _trusted_payment_id(self, session: RazorpaySessionData) -> Optional[str]:
        """Snapshot id from the gateway, else a client-supplied `payment_id` whose signature verifies."""
        snapshot_id = (session.payment_snapshot or {}).get("id")
        if isinstance(snapshot_id, str) and snapshot_id:
            return snapshot_id
        if self._proof_verifies(session):
            return session.payment_id
        if session.payment_id:
            logger.warning(
                "razorpay_unverified_payment_id_ignored",
                order_id=session.order_id,
                payment_id=session.payment_id,
            )
        return None

    @staticmethod
    def _whitelist(patch: Optional[Mapping[str, Any]]) -> dict[str, str]:
        """Collect whitelisted string fields from the patch (top level, `data` or `context`)."""
        if not isinstance(patch, Mapping):
            return {}
        accepted: dict[str, str] = {}
        sources = [patch.get("context"), patch.get("data"), patch]
        for source in sources:
            if not isinstance(source, Mapping):
                continue
            for key, target in _PATCH_FIELDS.items():
                value = source.get(key)
                if isinstance(value, str) and value:
                    accepted[target] = value
        return accepted

    @staticmethod
    def _envelope(
        payload: Union[WebhookPayload, Mapping[str, Any], bytes, str, None],
        headers: Optional[Mapping[str, Any]],
    ) -> WebhookPayload:
        if isinstance(payload, WebhookPayload):
            envelope = payload.model_copy()
        elif isinstance(payload, (bytes, str)):
            envelope = WebhookPayload(raw_data=payload)
        elif isinstance(payload, Mapping):
            envelope = WebhookPayload(data=dict(payload))
        else:
            envelope = WebhookPayload()
        if headers:
            envelope.headers = {**envelope.headers, **dict(headers)}
        return envelope
