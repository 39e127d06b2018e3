"""
Razorpay REST v1 resource client over httpx.

Only the order/payment operations the session adapter needs are exposed.
Every call is bounded by the configured httpx timeouts. GET reads are retried
on transport errors; order creation and capture are sent exactly once.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from core.settings import payment_settings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import (
    PaymentProviderError,
    PaymentRecoverableError,
)


class RazorpayApiClient(BasePaymentClient):
    provider = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        *,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            base_url=base_url or payment_settings.razorpay.base_url,
            auth=(key_id, key_secret),
            timeouts=payment_settings.timeouts.model_dump(),
            retry={"max": payment_settings.retry.max, "base": payment_settings.retry.base_backoff},
            transport=transport,
        )

    async def create_order(self, body: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/orders", json=body)

    async def fetch_order(self, order_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/orders/{order_id}", idempotent=True)

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/payments/{payment_id}", idempotent=True)

    async def capture_payment(self, payment_id: str, amount: int, currency: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            f"/payments/{payment_id}/capture",
            json={"amount": int(amount), "currency": currency},
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        idempotent: bool = False,
    ) -> dict[str, Any]:
        async def _send() -> httpx.Response:
            async with self.client() as http:
                return await http.request(method, path, json=json)

        try:
            resp = await (self._retry(_send) if idempotent else _send())
        except httpx.TimeoutException as exc:
            raise PaymentRecoverableError(
                f"Razorpay request timed out: {method} {path}",
                provider=self.provider,
                provider_code="timeout",
            ) from exc
        except httpx.TransportError as exc:
            raise PaymentRecoverableError(
                f"Razorpay transport error: {exc}",
                provider=self.provider,
                provider_code="transport",
            ) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            # Invalid path identifier, undecodable body, redirect loop
            raise PaymentProviderError(
                f"Razorpay request failed: {exc}",
                provider=self.provider,
                provider_code="request",
                details={"method": method, "path": path},
            ) from exc

        self._log("razorpay_api_response", method=method, path=path, status_code=resp.status_code)
        return self._parse(resp, method=method, path=path)

    def _parse(self, resp: httpx.Response, *, method: str, path: str) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.is_success:
            if not isinstance(body, dict):
                raise PaymentProviderError(
                    "Razorpay returned a non-object body",
                    provider=self.provider,
                    details={"method": method, "path": path, "status_code": resp.status_code},
                )
            return body

        error = (body or {}).get("error") if isinstance(body, dict) else None
        error = error if isinstance(error, dict) else {}
        code = str(error.get("code") or resp.status_code)
        description = str(error.get("description") or resp.reason_phrase or "Razorpay request failed")
        details = {"method": method, "path": path, "status_code": resp.status_code}
        if resp.status_code == 429 or resp.status_code >= 500:
            raise PaymentRecoverableError(description, provider=self.provider, provider_code=code, details=details)
        raise PaymentProviderError(description, provider=self.provider, provider_code=code, details=details)
