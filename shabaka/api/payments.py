from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel

from shabaka.api.dependencies import CurrentUser, require_role
from shabaka.container import get_payment_service, get_user_repo
from shabaka.core.errors import BadRequestError
from shabaka.models.content import PurchasableType
from shabaka.models.order import Order
from shabaka.models.principal import Principal
from shabaka.repos.user_repo import UserRepo
from shabaka.services.payment_service import Buyer, CheckoutResult, PaymentService
from shabaka.services.webhook_signature import SIGNATURE_HEADER

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

Payments = Annotated[PaymentService, Depends(get_payment_service)]
Users = Annotated[UserRepo, Depends(get_user_repo)]


class InitIn(BaseModel):
    """One id field per content type; the route picks the one it needs."""

    communityId: str | None = None
    courseId: str | None = None
    challengeId: str | None = None
    eventId: str | None = None
    productId: str | None = None
    sessionId: str | None = None
    ticketType: str | None = None

    def content_id(self, content_type: PurchasableType) -> str:
        value = getattr(self, f"{content_type.value}Id", None)
        if not value:
            raise BadRequestError(f"{content_type.value}Id is required")
        return value


class SubscriptionInitIn(BaseModel):
    tier: str


class CheckoutOut(BaseModel):
    link: str | None = None
    paymentId: str
    qrCode: str | None = None
    mode: str | None = None


class VerifyOut(BaseModel):
    status: str


class OrderOut(BaseModel):
    id: str
    buyerId: str
    creatorId: str
    contentType: str
    contentId: str
    amountDT: float
    platformPercent: float
    platformFixedDT: float
    platformFeeDT: float
    creatorNetDT: float
    promoCode: str | None
    discountDT: float
    paymentId: str | None
    paymentMethod: str | None
    provider: str
    status: str


async def buyer_of(principal: Principal, users: UserRepo) -> Buyer:
    user = await users.get_by_id(principal.user_id)
    return Buyer(user_id=principal.user_id, email=user.email if user is not None else None)


def checkout_out(result: CheckoutResult) -> CheckoutOut:
    if result.is_offline:
        return CheckoutOut(mode="offline", paymentId=result.payment_id)
    return CheckoutOut(link=result.link, paymentId=result.payment_id, qrCode=result.qr_code)


def order_out(order: Order) -> OrderOut:
    return OrderOut(
        id=order.id,
        buyerId=order.buyer_id,
        creatorId=order.creator_id,
        contentType=order.content_type.value,
        contentId=order.content_id,
        amountDT=order.amount_dt,
        platformPercent=order.platform_percent,
        platformFixedDT=order.platform_fixed_dt,
        platformFeeDT=order.platform_fee_dt,
        creatorNetDT=order.creator_net_dt,
        promoCode=order.promo_code,
        discountDT=order.discount_dt,
        paymentId=order.payment_id,
        paymentMethod=order.payment_method,
        provider=order.provider.value,
        status=order.status.value,
    )


@router.post("/init/subscription", response_model=CheckoutOut, response_model_exclude_none=True)
async def init_subscription(
    payload: SubscriptionInitIn,
    principal: CurrentUser,
    payments: Payments,
    users: Users,
    promo_code: Annotated[str | None, Query(alias="promoCode")] = None,
) -> CheckoutOut:
    buyer = await buyer_of(principal, users)
    result = await payments.init_subscription(payload.tier, buyer, promo_code=promo_code)
    return checkout_out(result)


@router.post("/init/{content_type}", response_model=CheckoutOut, response_model_exclude_none=True)
async def init_checkout(
    content_type: PurchasableType,
    payload: InitIn,
    principal: CurrentUser,
    payments: Payments,
    users: Users,
    promo_code: Annotated[str | None, Query(alias="promoCode")] = None,
) -> CheckoutOut:
    buyer = await buyer_of(principal, users)
    result = await payments.init_checkout(
        content_type,
        payload.content_id(content_type),
        buyer,
        promo_code=promo_code,
        ticket_type=payload.ticketType,
    )
    return checkout_out(result)


@router.get("/verify", response_model=VerifyOut)
async def verify(
    principal: CurrentUser,
    payments: Payments,
    payment_id: Annotated[str, Query(alias="paymentId", min_length=1)],
) -> VerifyOut:
    outcome = await payments.verify(payment_id)
    return VerifyOut(status=outcome.status)


@router.post("/webhook", response_model=VerifyOut)
async def flouci_webhook(
    request: Request,
    payments: Payments,
    signature: Annotated[str | None, Header(alias=SIGNATURE_HEADER)] = None,
) -> VerifyOut:
    # The signature covers the exact bytes received, so read the raw body
    raw = await request.body()
    outcome = await payments.handle_flouci_webhook(raw, signature)
    return VerifyOut(status=outcome.status)


@router.get("/orders", response_model=list[OrderOut])
async def my_orders(principal: CurrentUser, payments: Payments) -> list[OrderOut]:
    return [order_out(o) for o in await payments.list_orders(principal.user_id)]


@router.post("/orders/{order_id}/refund", response_model=OrderOut)
async def refund(
    order_id: str,
    payments: Payments,
    admin: Annotated[Principal, Depends(require_role("admin"))],
) -> OrderOut:
    order = await payments.refund(order_id)
    logger.info("Refund issued by admin=%s", admin.user_id, extra={"order_id": order.id})
    return order_out(order)
