"""Flouci redirect checkout (TND).

``init`` creates a payment and returns the hosted payment link plus a
QR code; the buyer pays on Flouci and is sent back to one of our
success/fail URLs.  ``verify`` asks Flouci for the payment's final
status.  All calls share one ``httpx.AsyncClient`` with a 15 second
timeout.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from shabaka.core.metrics import GATEWAY_REQUEST_DURATION
from shabaka.services.gateways.base import GatewayInit, GatewayVerification, to_millimes

logger = logging.getLogger(__name__)

FLOUCI_BASE_URL = "https://developers.flouci.com/api/"
FLOUCI_TIMEOUT_SECONDS = 15.0
SESSION_TIMEOUT_SECS = 1800


class FlouciGateway:
    provider = "flouci"

    def __init__(
        self,
        *,
        app_token: str,
        app_secret: str,
        developer_tracking_id: str = "",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._app_token = app_token
        self._app_secret = app_secret
        self._developer_tracking_id = developer_tracking_id
        self._client = client or httpx.AsyncClient(
            base_url=FLOUCI_BASE_URL, timeout=FLOUCI_TIMEOUT_SECONDS
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "apppublic": self._app_token,
            "appsecret": self._app_secret,
        }

    async def _post(self, operation: str, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        start = time.monotonic()
        try:
            resp = await self._client.post(path, json=payload, headers=self._headers())
        finally:
            GATEWAY_REQUEST_DURATION.labels(provider=self.provider, operation=operation).observe(
                time.monotonic() - start
            )
        resp.raise_for_status()
        return resp.json()

    async def init(
        self,
        amount_dt: float,
        success_url: str,
        fail_url: str,
        metadata: dict[str, Any] | None = None,
    ) -> GatewayInit:
        payload = {
            "app_token": self._app_token,
            "app_secret": self._app_secret,
            "amount": to_millimes(amount_dt),
            "accept_card": True,
            "session_timeout_secs": SESSION_TIMEOUT_SECS,
            "success_link": success_url,
            "fail_link": fail_url,
            "developer_tracking_id": self._developer_tracking_id,
            "payment_metadata": metadata or {},
        }
        try:
            data = await self._post("init", "payments/init", payload)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Flouci init failed: %s", exc)
            return GatewayInit.failed(_describe(exc))

        result = data.get("result") or {}
        payment_id = result.get("payment_id")
        if not payment_id:
            logger.warning("Flouci init returned no payment_id")
            return GatewayInit.failed("Flouci did not return a payment id")
        return GatewayInit(
            success=True,
            payment_id=payment_id,
            link=result.get("link"),
            qr_code=result.get("qr_code_png"),
        )

    async def verify(self, payment_id: str) -> GatewayVerification:
        try:
            data = await self._post("verify", "payments/verify", {"payment_id": payment_id})
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Flouci verify failed payment_id=%s: %s", payment_id, exc)
            return GatewayVerification.failed(_describe(exc))

        result = data.get("result") or {}
        amount = result.get("amount")
        return GatewayVerification(
            success=True,
            status=result.get("status"),
            amount=amount / 1000 if isinstance(amount, (int, float)) else None,
            payment_method=result.get("payment_method"),
            transaction_date=result.get("transaction_date"),
            metadata=result.get("payment_metadata"),
        )


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"Flouci returned HTTP {exc.response.status_code}"
    if isinstance(exc, httpx.TimeoutException):
        return "Flouci request timed out"
    return str(exc) or exc.__class__.__name__
