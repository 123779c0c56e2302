from __future__ import annotations

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Header, Query, Request
from pydantic import BaseModel

from shabaka.api.dependencies import CurrentUser
from shabaka.api.payments import InitIn, Payments, Users, buyer_of
from shabaka.models.content import PurchasableType
from shabaka.services.payment_service import CheckoutResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments/stripe-link", tags=["payments"])


class StripeSubscriptionIn(BaseModel):
    tier: str
    interval: Literal["month", "year"] = "month"


class PortalIn(BaseModel):
    customerId: str
    returnUrl: str | None = None


class StripeCheckoutOut(BaseModel):
    checkoutUrl: str | None = None
    sessionId: str
    provider: str = "stripe-link"
    mode: str | None = None


class StripeVerifyOut(BaseModel):
    status: str
    paymentMethod: str | None = None
    customerId: str | None = None


def _checkout_out(result: CheckoutResult) -> StripeCheckoutOut:
    if result.is_offline:
        return StripeCheckoutOut(sessionId=result.payment_id, provider="offline", mode="offline")
    return StripeCheckoutOut(checkoutUrl=result.link, sessionId=result.payment_id)


@router.post(
    "/init/subscription", response_model=StripeCheckoutOut, response_model_exclude_none=True
)
async def init_subscription(
    payload: StripeSubscriptionIn,
    principal: CurrentUser,
    payments: Payments,
    users: Users,
) -> StripeCheckoutOut:
    buyer = await buyer_of(principal, users)
    result = await payments.stripe_init_subscription(payload.tier, payload.interval, buyer)
    return _checkout_out(result)


@router.post(
    "/init/{content_type}", response_model=StripeCheckoutOut, response_model_exclude_none=True
)
async def init_checkout(
    content_type: Literal["community", "course"],
    payload: InitIn,
    principal: CurrentUser,
    payments: Payments,
    users: Users,
    promo_code: Annotated[str | None, Query(alias="promoCode")] = None,
) -> StripeCheckoutOut:
    kind = PurchasableType(content_type)
    buyer = await buyer_of(principal, users)
    result = await payments.stripe_init(
        kind, payload.content_id(kind), buyer, promo_code=promo_code
    )
    return _checkout_out(result)


@router.get("/verify", response_model=StripeVerifyOut)
async def verify(
    principal: CurrentUser,
    payments: Payments,
    session_id: Annotated[str, Query(alias="sessionId", min_length=1)],
) -> StripeVerifyOut:
    outcome = await payments.stripe_verify(session_id)
    return StripeVerifyOut(
        status=outcome.status,
        paymentMethod=outcome.payment_method,
        customerId=outcome.customer_id,
    )


@router.post("/webhook")
async def webhook(
    request: Request,
    payments: Payments,
    signature: Annotated[str | None, Header(alias="stripe-signature")] = None,
) -> dict[str, bool]:
    await payments.handle_stripe_webhook(await request.body(), signature)
    return {"received": True}


@router.post("/portal")
async def customer_portal(
    payload: PortalIn, principal: CurrentUser, payments: Payments
) -> dict[str, str]:
    url = await payments.customer_portal(payload.customerId, payload.returnUrl)
    return {"url": url}
