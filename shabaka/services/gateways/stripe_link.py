"""Stripe Checkout with Link.

Wraps the official ``stripe`` SDK.  The SDK is synchronous, so every
call runs in a worker thread via ``asyncio.to_thread`` and the event
loop keeps serving other requests while Stripe answers.

Amounts follow the same 1/1000 convention as Flouci (``tnd`` is a
three-decimal currency).  Like the Flouci wrapper, nothing here raises
for a Stripe-side failure: errors come back as ``success=False``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

import stripe

from shabaka.core.metrics import GATEWAY_REQUEST_DURATION
from shabaka.services.gateways.base import GatewayInit, GatewayVerification, to_millimes

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CURRENCY = "tnd"


@dataclass(frozen=True, slots=True)
class StripeResult:
    """Outcome of a Stripe call that yields one id or url."""

    success: bool
    value: str | None = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class WebhookEvent:
    success: bool
    type: str | None = None
    data: Any = None
    error: str | None = None


def field_of(obj: Any, name: str) -> Any:
    """Read a field from a Stripe object or a plain dict."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class StripeLinkGateway:
    provider = "stripe-link"

    def __init__(
        self,
        *,
        api_key: str | None,
        webhook_secret: str | None,
        currency: str = DEFAULT_CURRENCY,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._currency = currency

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def _call(self, operation: str, fn: Callable[..., T], /, **kwargs: Any) -> T:
        if not self._api_key:
            raise stripe.AuthenticationError("STRIPE_SECRET_KEY is not configured")
        start = time.monotonic()
        try:
            return await asyncio.to_thread(fn, api_key=self._api_key, **kwargs)
        finally:
            GATEWAY_REQUEST_DURATION.labels(provider=self.provider, operation=operation).observe(
                time.monotonic() - start
            )

    # --- Checkout ---

    async def create_checkout_session(
        self,
        *,
        amount_dt: float,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str] | None = None,
        customer_email: str | None = None,
    ) -> GatewayInit:
        try:
            session = await self._call(
                "checkout",
                stripe.checkout.Session.create,
                mode="payment",
                line_items=[
                    {
                        "price_data": {
                            "currency": self._currency,
                            "product_data": {"name": product_name},
                            "unit_amount": to_millimes(amount_dt),
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
                customer_email=customer_email,
                customer_creation="always",
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe checkout session failed: %s", exc.user_message or exc)
            return GatewayInit.failed(exc.user_message or "Link checkout session creation failed")
        return GatewayInit(
            success=True, payment_id=field_of(session, "id"), link=field_of(session, "url")
        )

    async def create_price(
        self,
        *,
        amount_dt: float,
        interval: Literal["month", "year"],
        product_name: str,
        product_description: str | None = None,
    ) -> StripeResult:
        try:
            product = await self._call(
                "create_product",
                stripe.Product.create,
                name=product_name,
                description=product_description,
            )
            price = await self._call(
                "create_price",
                stripe.Price.create,
                unit_amount=to_millimes(amount_dt),
                currency=self._currency,
                recurring={"interval": interval},
                product=field_of(product, "id"),
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe price creation failed: %s", exc.user_message or exc)
            return StripeResult(False, error=exc.user_message or "Price creation failed")
        return StripeResult(True, value=field_of(price, "id"))

    async def create_subscription_session(
        self,
        *,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str] | None = None,
        customer_email: str | None = None,
        trial_days: int | None = None,
    ) -> GatewayInit:
        subscription_data: dict[str, Any] = {"metadata": metadata or {}}
        if trial_days:
            subscription_data["trial_period_days"] = trial_days
        try:
            session = await self._call(
                "subscription_checkout",
                stripe.checkout.Session.create,
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata or {},
                customer_email=customer_email,
                subscription_data=subscription_data,
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe subscription session failed: %s", exc.user_message or exc)
            return GatewayInit.failed(
                exc.user_message or "Link subscription session creation failed"
            )
        return GatewayInit(
            success=True, payment_id=field_of(session, "id"), link=field_of(session, "url")
        )

    # --- Verification ---

    async def verify(self, session_id: str) -> GatewayVerification:
        try:
            session = await self._call(
                "verify",
                stripe.checkout.Session.retrieve,
                id=session_id,
                expand=["payment_intent", "customer"],
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe verify failed session=%s: %s", session_id, exc)
            return GatewayVerification.failed(exc.user_message or "Payment verification failed")

        customer = field_of(session, "customer")
        customer_id = customer if isinstance(customer, str) else field_of(customer, "id")
        intent = field_of(session, "payment_intent")
        metadata = dict(field_of(session, "metadata") or {})

        if intent:
            amount = field_of(intent, "amount")
            method_types = field_of(intent, "payment_method_types") or []
            return GatewayVerification(
                success=True,
                status=field_of(intent, "status"),
                amount=amount / 1000 if amount is not None else None,
                payment_method=method_types[0] if method_types else None,
                customer_id=customer_id,
                metadata=metadata,
            )

        if field_of(session, "mode") == "subscription":
            # Subscription checkouts carry no payment intent; the session's
            # own payment_status is authoritative.
            paid = field_of(session, "payment_status") in ("paid", "no_payment_required")
            return GatewayVerification(
                success=True,
                status="succeeded" if paid else field_of(session, "payment_status"),
                payment_method="link",
                customer_id=customer_id,
                metadata=metadata,
            )

        return GatewayVerification.failed("No payment intent found")

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify ``stripe-signature`` and parse the event (no network)."""
        if not self._webhook_secret:
            return WebhookEvent(False, error="STRIPE_WEBHOOK_SECRET is not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            return WebhookEvent(False, error=str(exc) or "Invalid webhook payload")
        return WebhookEvent(
            True, type=field_of(event, "type"), data=field_of(field_of(event, "data"), "object")
        )

    # --- Account management ---

    async def create_customer_portal_session(
        self, customer_id: str, return_url: str
    ) -> StripeResult:
        try:
            session = await self._call(
                "customer_portal",
                stripe.billing_portal.Session.create,
                customer=customer_id,
                return_url=return_url,
            )
        except stripe.StripeError as exc:
            return StripeResult(
                False, error=exc.user_message or "Failed to create customer portal session"
            )
        return StripeResult(True, value=field_of(session, "url"))

    async def refund(self, session_id: str) -> StripeResult:
        try:
            session = await self._call(
                "retrieve_session", stripe.checkout.Session.retrieve, id=session_id
            )
            intent_id = field_of(session, "payment_intent")
            if not intent_id:
                return StripeResult(False, error="No payment intent to refund")
            refund = await self._call("refund", stripe.Refund.create, payment_intent=intent_id)
        except stripe.StripeError as exc:
            logger.warning("Stripe refund failed session=%s: %s", session_id, exc)
            return StripeResult(False, error=exc.user_message or "Refund failed")
        return StripeResult(True, value=field_of(refund, "id"))
