import hashlib
import hmac
from decimal import Decimal

import httpx
import pytest

from application.dtos.payments import RazorpaySessionData
from domain.payment.entity import PaymentSessionStatus
from infrastructure.external.payments.exceptions import (
    PaymentInvalidInputError,
    PaymentNotSupportedError,
    PaymentProviderError,
    PaymentSignatureError,
)
from infrastructure.external.payments.razorpay_api import RazorpayApiClient
from infrastructure.external.payments.razorpay_provider import RazorpayProvider


KEY_SECRET = "rzp_test_secret"


def _sign(order_id: str, payment_id: str, secret: str = KEY_SECRET) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def _proof_session(gateway, status: str = "captured", amount: int = 50000) -> dict:
    gateway.payments["pay_1"] = {"id": "pay_1", "order_id": "order_1", "status": status, "amount": amount}
    return {
        "order_id": "order_1",
        "amount_subunits": amount,
        "currency_code": "INR",
        "payment_id": "pay_1",
        "signature": _sign("order_1", "pay_1"),
    }


@pytest.mark.parametrize("options", [{}, {"key_id": "k"}, {"key_secret": "s"}, {"key_id": "", "key_secret": "s"}])
def test_construction_requires_credentials(options, gateway):
    with pytest.raises(PaymentInvalidInputError):
        RazorpayProvider(options, client=gateway)


def test_auto_capture_is_carried_as_advisory(gateway):
    p = RazorpayProvider({"key_id": "k", "key_secret": "s", "auto_capture": False}, client=gateway)
    assert p.auto_capture is False


@pytest.mark.asyncio
async def test_initiate_converts_amount_and_normalizes_currency(provider, gateway):
    result = await provider.initiate(Decimal("500.00"), "inr", {"idempotency_key": "idem_1", "customer_id": "cus_9"})

    assert result.id == "order_1"
    assert result.data.order_id == "order_1"
    assert result.data.amount_subunits == 50000
    assert result.data.currency_code == "INR"
    name, body = gateway.calls[0]
    assert name == "create_order"
    assert body == {"amount": 50000, "currency": "INR", "receipt": "idem_1", "notes": {"customer_id": "cus_9"}}


@pytest.mark.asyncio
async def test_initiate_defaults_currency_and_synthesizes_receipt(provider, gateway):
    result = await provider.initiate(12.5)

    assert result.data.currency_code == "INR"
    assert result.data.amount_subunits == 1250
    receipt = gateway.calls[0][1]["receipt"]
    assert receipt.startswith("receipt_") and receipt[len("receipt_"):].isdigit()


@pytest.mark.asyncio
async def test_initiate_drops_free_form_context(provider, gateway):
    await provider.initiate(1, "INR", {"email": "a@b.c", "phone": "123", "customer_id": None})
    assert gateway.calls[0][1]["notes"] == {"customer_id": ""}


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", [0, -5, "nope", None, float("nan")])
async def test_initiate_rejects_invalid_amount(provider, gateway, amount):
    with pytest.raises(PaymentInvalidInputError):
        await provider.initiate(amount, "INR")
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_update_payment_merges_whitelisted_fields_only(provider):
    current = {"order_id": "order_1", "amount_subunits": 50000, "currency_code": "INR"}
    patch = {
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": "sig",
        "amount_subunits": 1,
        "currency_code": "USD",
        "is_admin": True,
        "payment_snapshot": {"status": "captured"},
    }

    result = await provider.update_payment(current, patch)

    assert result.data.payment_id == "pay_1"
    assert result.data.signature == "sig"
    assert result.data.amount_subunits == 50000
    assert result.data.currency_code == "INR"
    assert result.data.payment_snapshot is None
    assert "is_admin" not in result.data.to_host()


@pytest.mark.asyncio
async def test_update_payment_is_idempotent(provider):
    current = {"order_id": "order_1", "amount_subunits": 50000, "currency_code": "INR"}
    patch = {"data": {"payment_id": "pay_1", "signature": "sig"}}

    once = await provider.update_payment(current, patch)
    twice = await provider.update_payment(once.data, patch)

    assert once.data == twice.data
    assert twice.data.to_host() == {
        "order_id": "order_1",
        "amount_subunits": 50000,
        "currency_code": "INR",
        "payment_id": "pay_1",
        "signature": "sig",
    }


@pytest.mark.asyncio
async def test_update_payment_ignores_non_string_values_and_keeps_order_id(provider):
    current = {"order_id": "order_1"}
    result = await provider.update_payment(current, {"payment_id": 123, "order_id": "order_other", "context": {"signature": "s"}})

    assert result.data.payment_id is None
    assert result.data.order_id == "order_1"
    assert result.data.signature == "s"


@pytest.mark.asyncio
async def test_update_payment_fills_missing_order_id(provider):
    result = await provider.update_payment({}, {"razorpay_order_id": "order_7"})
    assert result.data.order_id == "order_7"


@pytest.mark.asyncio
async def test_authorize_without_proof_is_pending_and_offline(provider, gateway):
    data = {"order_id": "order_1", "amount_subunits": 100, "currency_code": "INR"}
    result = await provider.authorize(data)

    assert result.status is PaymentSessionStatus.PENDING
    assert result.data.to_host() == data
    assert gateway.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "gateway_status, expected",
    [
        ("captured", PaymentSessionStatus.CAPTURED),
        ("authorized", PaymentSessionStatus.AUTHORIZED),
        ("failed", PaymentSessionStatus.CANCELED),
        ("created", PaymentSessionStatus.PENDING),
    ],
)
async def test_authorize_with_valid_proof_maps_gateway_status(provider, gateway, gateway_status, expected):
    data = _proof_session(gateway, status=gateway_status)

    result = await provider.authorize(data)

    assert result.status is expected
    assert result.data.payment_snapshot["id"] == "pay_1"
    assert result.data.payment_snapshot["status"] == gateway_status
    assert result.data.amount_subunits == 50000


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["order_id", "payment_id", "signature"])
async def test_authorize_rejects_single_character_mutation(provider, gateway, field):
    data = _proof_session(gateway)
    value = data[field]
    data[field] = value[:-1] + ("0" if value[-1] != "0" else "1")

    with pytest.raises(PaymentSignatureError):
        await provider.authorize(data)
    assert not any(call[0] == "fetch_payment" for call in gateway.calls)


@pytest.mark.asyncio
async def test_authorize_fetch_failure_degrades_to_pending(provider, gateway):
    data = _proof_session(gateway)
    gateway.fail_fetch = True

    result = await provider.authorize(data)

    assert result.status is PaymentSessionStatus.PENDING
    assert result.data.payment_snapshot is None
    assert result.data.payment_id == "pay_1"


@pytest.mark.asyncio
async def test_capture_uses_amount_fixed_at_initiation(provider, gateway):
    init = await provider.initiate("500.00", "inr")
    gateway.payments["pay_1"] = {"id": "pay_1", "status": "authorized", "amount": 50000}
    patched = await provider.update_payment(
        init.data, {"payment_id": "pay_1", "signature": _sign(init.data.order_id, "pay_1")}
    )
    authorized = await provider.authorize(patched.data)
    assert authorized.status is PaymentSessionStatus.AUTHORIZED

    captured = await provider.capture(authorized.data.to_host())

    assert gateway.calls[-1] == ("capture_payment", "pay_1", 50000, "INR")
    assert captured.status is PaymentSessionStatus.CAPTURED
    assert captured.data.payment_snapshot["status"] == "captured"
    assert captured.data.amount_subunits == 50000
    assert captured.data.signature == patched.data.signature


@pytest.mark.asyncio
async def test_capture_prefers_snapshot_id(provider, gateway):
    data = {"order_id": "o", "amount_subunits": 10, "payment_id": "pay_old", "payment_snapshot": {"id": "pay_new"}}
    await provider.capture(data)
    assert gateway.calls[-1] == ("capture_payment", "pay_new", 10, "INR")


@pytest.mark.asyncio
async def test_capture_without_amount_is_invalid(provider, gateway):
    with pytest.raises(PaymentInvalidInputError):
        await provider.capture({"order_id": "order_1", "payment_id": "pay_1", "signature": _sign("order_1", "pay_1")})
    with pytest.raises(PaymentInvalidInputError):
        await provider.capture({"order_id": "order_1", "payment_id": "pay_1", "signature": _sign("order_1", "pay_1"), "amount_subunits": 0})
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_capture_without_payment_id_is_invalid(provider, gateway):
    with pytest.raises(PaymentInvalidInputError):
        await provider.capture({"order_id": "order_1", "amount_subunits": 100})
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_capture_propagates_gateway_errors(provider, gateway):
    async def _boom(*args):
        raise PaymentProviderError("already captured", provider="razorpay", provider_code="BAD_REQUEST_ERROR")

    gateway.capture_payment = _boom
    with pytest.raises(PaymentProviderError):
        await provider.capture({"order_id": "o", "amount_subunits": 10, "payment_id": "pay_1", "signature": _sign("o", "pay_1")})


@pytest.mark.asyncio
async def test_cancel_and_delete_are_identity(provider, gateway):
    data = {"order_id": "order_1", "amount_subunits": 100, "currency_code": "INR", "payment_id": "pay_1"}
    assert (await provider.cancel(data)).data.to_host() == data
    assert (await provider.delete_payment(data)).data.to_host() == data
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_retrieve_prefers_payment_then_order(provider, gateway):
    gateway.payments["pay_1"] = {"id": "pay_1", "status": "authorized"}
    gateway.orders["order_1"] = {"id": "order_1", "status": "attempted"}

    with_payment = await provider.retrieve({"order_id": "order_1", "payment_id": "pay_1", "signature": _sign("order_1", "pay_1")})
    assert with_payment.data.payment_snapshot == {"id": "pay_1", "status": "authorized"}
    assert with_payment.data.order_snapshot is None

    order_only = await provider.retrieve({"order_id": "order_1"})
    assert order_only.data.order_snapshot == {"id": "order_1", "status": "attempted"}

    empty = await provider.retrieve({})
    assert empty.data == RazorpaySessionData()


@pytest.mark.asyncio
async def test_retrieve_failure_returns_state_unchanged(provider, gateway):
    gateway.fail_fetch = True
    data = {"order_id": "order_1", "payment_id": "pay_1", "signature": _sign("order_1", "pay_1"), "amount_subunits": 5}
    result = await provider.retrieve(data)
    assert result.data.to_host() == data


@pytest.mark.asyncio
async def test_get_status_uses_payment_then_order(provider, gateway):
    gateway.payments["pay_1"] = {"id": "pay_1", "status": "captured"}
    gateway.orders["order_1"] = {"id": "order_1", "status": "paid"}
    gateway.orders["order_2"] = {"id": "order_2", "status": "created"}

    assert (await provider.get_status({"order_id": "order_1", "payment_id": "pay_1", "signature": _sign("order_1", "pay_1")})).status is PaymentSessionStatus.CAPTURED
    assert (await provider.get_status({"order_id": "order_1"})).status is PaymentSessionStatus.CAPTURED
    assert (await provider.get_status({"order_id": "order_2"})).status is PaymentSessionStatus.PENDING
    assert (await provider.get_status({})).status is PaymentSessionStatus.PENDING


@pytest.mark.asyncio
async def test_get_status_is_stable_and_never_raises(provider, gateway):
    gateway.payments["pay_1"] = {"id": "pay_1", "status": "authorized"}
    data = {"order_id": "order_1", "payment_id": "pay_1", "signature": _sign("order_1", "pay_1")}

    statuses = {(await provider.get_status(data)).status for _ in range(3)}
    assert statuses == {PaymentSessionStatus.AUTHORIZED}

    gateway.fail_fetch = True
    assert (await provider.get_status(data)).status is PaymentSessionStatus.PENDING
    assert (await provider.get_status({"amount_subunits": "not-a-number"})).status is PaymentSessionStatus.PENDING


@pytest.mark.asyncio
async def test_refund_is_never_supported(provider, gateway):
    with pytest.raises(PaymentNotSupportedError):
        await provider.refund({"order_id": "order_1", "payment_id": "pay_1"}, Decimal("1.00"))
    with pytest.raises(PaymentNotSupportedError):
        await provider.refund(None)
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_unknown_session_fields_are_ignored(provider):
    result = await provider.cancel({"order_id": "order_1", "razorpay_signature": "x", "internal": 1})
    assert result.data.to_host() == {"order_id": "order_1"}


@pytest.mark.asyncio
async def test_capture_refuses_unverified_payment_id(provider, gateway):
    data = {
        "order_id": "order_1",
        "amount_subunits": 50000,
        "currency_code": "INR",
        "payment_id": "pay_someone_else",
        "signature": "bogus",
    }

    with pytest.raises(PaymentInvalidInputError) as exc_info:
        await provider.capture(data)

    assert exc_info.value.field == "payment_id"
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_capture_refuses_payment_id_without_signature(provider, gateway):
    with pytest.raises(PaymentInvalidInputError):
        await provider.capture({"order_id": "order_1", "amount_subunits": 100, "payment_id": "pay_1"})
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_retrieve_and_status_fall_back_to_order_for_unverified_payment_id(provider, gateway):
    gateway.payments["pay_someone_else"] = {"id": "pay_someone_else", "status": "captured"}
    gateway.orders["order_1"] = {"id": "order_1", "status": "created"}
    data = {"order_id": "order_1", "payment_id": "pay_someone_else", "signature": "bogus"}

    retrieved = await provider.retrieve(data)
    status = await provider.get_status(data)

    assert retrieved.data.payment_snapshot is None
    assert retrieved.data.order_snapshot == {"id": "order_1", "status": "created"}
    assert status.status is PaymentSessionStatus.PENDING
    assert [call[0] for call in gateway.calls] == ["fetch_order", "fetch_order"]


@pytest.mark.asyncio
async def test_unverified_payment_id_without_order_stays_offline(provider, gateway):
    data = {"payment_id": "pay_1", "signature": "bogus"}

    assert (await provider.retrieve(data)).data.to_host() == data
    assert (await provider.get_status(data)).status is PaymentSessionStatus.PENDING
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_get_status_survives_malformed_payment_id_over_http():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "x", "status": "captured"})

    client = RazorpayApiClient(
        "rzp_test_key",
        KEY_SECRET,
        base_url="https://api.razorpay.test/v1",
        transport=httpx.MockTransport(handler),
    )
    p = RazorpayProvider({"key_id": "rzp_test_key", "key_secret": KEY_SECRET}, client=client)
    data = {"order_id": "order_1", "payment_id": "pay_\x01x", "signature": _sign("order_1", "pay_\x01x")}

    assert (await p.get_status(data)).status is PaymentSessionStatus.PENDING
    assert (await p.retrieve(data)).data.to_host() == data
    await p.aclose()
