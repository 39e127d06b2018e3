"""
Payments API routes.

Stateless session endpoints plus the gateway webhook. The caller sends the
session data it stored and must persist the `data` returned. Keep this thin:
no gateway details here.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.dependencies import get_payment_service
from application.dtos.payments import (
    InitiateSessionRequest,
    PaymentSessionResult,
    RefundSessionRequest,
    SessionRequest,
    UpdateSessionRequest,
    WebhookPayload,
)
from application.services.payment_service import PaymentService
from core.response import success_response
from core.logging_config import get_logger


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)


def _session_body(result: PaymentSessionResult) -> dict:
    body = {"data": result.data.to_host()}
    if result.status is not None:
        body["status"] = result.status.value
    return body


@router.post("/webhooks/{provider}")
async def payments_webhook(
    provider: str,
    request: Request,
    service: PaymentService = Depends(get_payment_service),
):
    if provider.lower() != service.provider.provider:
        raise HTTPException(status_code=404, detail=f"Unsupported payment provider: {provider}")

    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    result = await service.handle_webhook(WebhookPayload(raw_data=raw_body, headers=headers))

    # Always 200: the action tells the host whether to apply the event
    return success_response(data=result.model_dump(mode="json"), message="Webhook received")


@router.post("/sessions", summary="Initiate payment session")
async def initiate_session(payload: InitiateSessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.initiate(payload.amount, payload.currency_code, payload.context)
    return success_response(data={"id": result.id, "data": result.data.to_host()}, message="Payment session initiated")


@router.post("/sessions/update", summary="Patch checkout-proof into session")
async def update_session(payload: UpdateSessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.update_payment(payload.data, payload.patch)
    return success_response(data=_session_body(result), message="Payment session updated")


@router.post("/sessions/authorize", summary="Verify checkout-proof and authorize")
async def authorize_session(payload: SessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.authorize(payload.data)
    return success_response(data=_session_body(result), message="Payment session authorized")


@router.post("/sessions/capture", summary="Capture the stored amount")
async def capture_session(payload: SessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.capture(payload.data)
    return success_response(data=_session_body(result), message="Payment captured")


@router.post("/sessions/cancel", summary="Cancel payment session")
async def cancel_session(payload: SessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.cancel(payload.data)
    return success_response(data=_session_body(result), message="Payment session canceled")


@router.post("/sessions/delete", summary="Delete payment session")
async def delete_session(payload: SessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.delete_payment(payload.data)
    return success_response(data=_session_body(result), message="Payment session deleted")


@router.post("/sessions/retrieve", summary="Refresh gateway snapshots")
async def retrieve_session(payload: SessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.retrieve(payload.data)
    return success_response(data=_session_body(result), message="Payment session retrieved")


@router.post("/sessions/status", summary="Poll payment status")
async def session_status(payload: SessionRequest, service: PaymentService = Depends(get_payment_service)):
    result = await service.get_status(payload.data)
    return success_response(data={"status": result.status.value}, message="Payment status")


@router.post("/sessions/refund", summary="Refund (not supported)")
async def refund_session(payload: RefundSessionRequest, service: PaymentService = Depends(get_payment_service)):
    await service.refund(payload.data, payload.amount)
    return success_response(message="Refund triggered")
