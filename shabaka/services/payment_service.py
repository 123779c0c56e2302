"""Checkout orchestration and payment reconciliation.

Every checkout, whatever the content type or gateway, runs the same
steps:

  1. resolve the item and its price (NotFound / BadRequest when free)
  2. apply the promo code, if one was given and it is valid
  3. split the (discounted) amount with the fee engine
  4. persist a ``pending`` Order
  5. offline mode: the order id becomes the payment id, no redirect
     otherwise: call the gateway and store its payment/session id

Reconciliation (client polling ``verify``, the Flouci webhook, the
Stripe webhook) all funnel into ``_settle``.  ``_settle`` relies on the
order repository's pending->paid compare-and-swap, so whichever path
gets there first redeems the promo, grants access and queues the
receipt; the others see an already-paid order and do nothing.

A crash between step 4 and step 5 leaves a pending order with no
payment id.  Such orders are abandoned, never retried; verifying one is
a BadRequest.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Literal

from shabaka.core.errors import BadRequestError, NotFoundError, UnauthorizedError
from shabaka.core.metrics import PAYMENT_INITS, PAYMENT_VERIFICATIONS, WEBHOOK_EVENTS
from shabaka.models.catalog import Course, Event, Product, Session
from shabaka.models.challenge import Challenge
from shabaka.models.content import ContentType, PurchasableType
from shabaka.models.order import Order, OrderStatus, PaymentProvider
from shabaka.repos.catalog_repo import CatalogRepo
from shabaka.repos.order_repo import OrderRepo
from shabaka.services.access_service import AccessService
from shabaka.services.fee_service import FeeService
from shabaka.services.gateways.base import GatewayVerification, RedirectGateway
from shabaka.services.gateways.stripe_link import StripeLinkGateway, field_of
from shabaka.services.promo_service import PromoService
from shabaka.services.task_queue import NOTIFICATIONS_QUEUE, TaskQueue
from shabaka.services.webhook_signature import verify_signature

logger = logging.getLogger(__name__)

FLOUCI_SUCCESS = "SUCCESS"
STRIPE_SUCCESS = "succeeded"

STRIPE_LINK_TYPES = frozenset({PurchasableType.COMMUNITY, PurchasableType.COURSE})


@dataclass(frozen=True, slots=True)
class Purchasable:
    content_type: PurchasableType
    content_id: str
    creator_id: str
    price: float
    title: str


@dataclass(frozen=True, slots=True)
class Buyer:
    user_id: str
    email: str | None = None


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    order_id: str
    payment_id: str
    provider: PaymentProvider
    link: str | None = None
    qr_code: str | None = None

    @property
    def is_offline(self) -> bool:
        return self.provider == PaymentProvider.OFFLINE


@dataclass(frozen=True, slots=True)
class VerifyOutcome:
    status: str
    order: Order
    payment_method: str | None = None
    customer_id: str | None = None


def _log_extra(order: Order) -> dict[str, str | None]:
    return {
        "order_id": order.id,
        "payment_id": order.payment_id,
        "user_id": order.buyer_id,
        "provider": order.provider.value,
        "content_type": order.content_type.value,
    }


class PaymentService:
    def __init__(
        self,
        *,
        orders: OrderRepo,
        catalog: CatalogRepo,
        fees: FeeService,
        promos: PromoService,
        access: AccessService,
        flouci: RedirectGateway,
        stripe_link: StripeLinkGateway,
        notifications: TaskQueue,
        payment_mode: Literal["instant", "offline"],
        frontend_url: str,
        flouci_webhook_secret: str | None = None,
    ) -> None:
        self._orders = orders
        self._catalog = catalog
        self._fees = fees
        self._promos = promos
        self._access = access
        self._flouci = flouci
        self._stripe = stripe_link
        self._notifications = notifications
        self._payment_mode = payment_mode
        self._frontend_url = frontend_url.rstrip("/")
        self._flouci_webhook_secret = flouci_webhook_secret

    @property
    def offline(self) -> bool:
        return self._payment_mode == "offline"

    # ------------------------------------------------------------------
    # Price resolution
    # ------------------------------------------------------------------

    async def resolve_purchasable(
        self,
        content_type: PurchasableType,
        content_id: str,
        ticket_type: str | None = None,
    ) -> Purchasable:
        if content_type == PurchasableType.COMMUNITY:
            community = await self._catalog.get_community(content_id)
            if community is None:
                raise NotFoundError("Community not found")
            item = Purchasable(
                content_type, community.id, community.creator_id, community.fees_of_join, community.name
            )
        elif content_type == PurchasableType.SUBSCRIPTION:
            raise BadRequestError("Use the subscription checkout for plans")
        else:
            found = await self._catalog.get_item(ContentType(content_type.value), content_id)
            if found is None:
                raise NotFoundError(f"{content_type.value.capitalize()} not found")
            item = Purchasable(
                content_type,
                found.id,
                found.creator_id,
                self._price_of(found, ticket_type),
                found.title,
            )

        if item.price <= 0:
            raise BadRequestError(
                f"This {content_type.value} is free, no payment required"
            )
        return item

    @staticmethod
    def _price_of(found: object, ticket_type: str | None) -> float:
        match found:
            case Course() | Product() | Session():
                return found.price
            case Challenge():
                return found.participation_fee
            case Event():
                ticket = found.ticket(ticket_type)
                if ticket is None:
                    raise BadRequestError("Ticket type not found for this event")
                return ticket.price
        raise BadRequestError("This content cannot be purchased")

    async def _plan_item(self, tier: str, buyer: Buyer) -> Purchasable:
        plan = await self._catalog.get_plan(tier)
        if plan is None or not plan.is_active:
            raise NotFoundError("Plan not found")
        return Purchasable(
            PurchasableType.SUBSCRIPTION, plan.tier.value, buyer.user_id, plan.price_dt, plan.name
        )

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    async def _create_order(
        self,
        item: Purchasable,
        buyer: Buyer,
        promo_code: str | None,
        provider: PaymentProvider,
    ) -> Order:
        promo = await self._promos.validate_and_apply(
            promo_code, item.price, item.content_type.value, item.content_id, buyer.email
        )
        amount = item.price
        if promo.valid:
            amount = promo.final_amount_dt
        elif promo_code:
            logger.info("Promo %s ignored: %s", promo_code, promo.reason)
        if amount <= 0:
            raise BadRequestError("Promo code covers the full price, no payment required")

        fees = await self._fees.calculate_for_amount(amount, item.creator_id)
        order = Order.new(
            buyer_id=buyer.user_id,
            creator_id=item.creator_id,
            content_type=item.content_type,
            content_id=item.content_id,
            amount_dt=fees.amount_dt,
            platform_percent=fees.platform_percent,
            platform_fixed_dt=fees.platform_fixed_dt,
            platform_fee_dt=fees.platform_fee_dt,
            creator_net_dt=fees.creator_net_dt,
            provider=PaymentProvider.OFFLINE if self.offline else provider,
            promo_code=promo.applied_code if promo.valid else None,
            discount_dt=promo.discount_dt if promo.valid else 0.0,
        )
        await self._orders.add(order)
        PAYMENT_INITS.labels(provider=order.provider.value, content_type=order.content_type.value).inc()
        logger.info("Order created amount=%.2f", order.amount_dt, extra=_log_extra(order))
        return order

    async def _offline_checkout(self, order: Order) -> CheckoutResult:
        await self._orders.set_payment_id(order.id, order.id)
        return CheckoutResult(
            order_id=order.id, payment_id=order.id, provider=PaymentProvider.OFFLINE
        )

    def _return_urls(self, scope: str, content_id: str, suffix: str = "") -> tuple[str, str]:
        query = f"scope={scope}&id={content_id}{suffix}"
        return (
            f"{self._frontend_url}/payment/success?{query}",
            f"{self._frontend_url}/payment/failed?{query}",
        )

    # ------------------------------------------------------------------
    # Flouci checkout
    # ------------------------------------------------------------------

    async def init_checkout(
        self,
        content_type: PurchasableType,
        content_id: str,
        buyer: Buyer,
        *,
        promo_code: str | None = None,
        ticket_type: str | None = None,
    ) -> CheckoutResult:
        item = await self.resolve_purchasable(content_type, content_id, ticket_type)
        return await self._flouci_checkout(item, buyer, promo_code, ticket_type)

    async def init_subscription(
        self, tier: str, buyer: Buyer, *, promo_code: str | None = None
    ) -> CheckoutResult:
        item = await self._plan_item(tier, buyer)
        return await self._flouci_checkout(item, buyer, promo_code, None)

    async def _flouci_checkout(
        self,
        item: Purchasable,
        buyer: Buyer,
        promo_code: str | None,
        ticket_type: str | None,
    ) -> CheckoutResult:
        order = await self._create_order(item, buyer, promo_code, PaymentProvider.FLOUCI)
        if self.offline:
            return await self._offline_checkout(order)

        success_url, fail_url = self._return_urls(item.content_type.value, item.content_id)
        metadata = {
            "orderId": order.id,
            "userId": buyer.user_id,
            "contentType": item.content_type.value,
            "contentId": item.content_id,
        }
        if ticket_type:
            metadata["ticketType"] = ticket_type

        init = await self._flouci.init(order.amount_dt, success_url, fail_url, metadata)
        if not init.success or not init.payment_id:
            logger.warning("Flouci init failed: %s", init.error, extra=_log_extra(order))
            raise BadRequestError(init.error or "Payment initialisation failed")

        await self._orders.set_payment_id(order.id, init.payment_id)
        return CheckoutResult(
            order_id=order.id,
            payment_id=init.payment_id,
            provider=PaymentProvider.FLOUCI,
            link=init.link,
            qr_code=init.qr_code,
        )

    # ------------------------------------------------------------------
    # Stripe Link checkout
    # ------------------------------------------------------------------

    async def stripe_init(
        self,
        content_type: PurchasableType,
        content_id: str,
        buyer: Buyer,
        *,
        promo_code: str | None = None,
    ) -> CheckoutResult:
        if content_type not in STRIPE_LINK_TYPES:
            raise BadRequestError("Stripe Link checkout supports communities and courses only")
        item = await self.resolve_purchasable(content_type, content_id)
        order = await self._create_order(item, buyer, promo_code, PaymentProvider.STRIPE_LINK)
        if self.offline:
            return await self._offline_checkout(order)

        success_url, cancel_url = self._return_urls(
            item.content_type.value, item.content_id, "&session_id={CHECKOUT_SESSION_ID}"
        )
        init = await self._stripe.create_checkout_session(
            amount_dt=order.amount_dt,
            product_name=item.title,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={
                "orderId": order.id,
                "userId": buyer.user_id,
                "contentType": item.content_type.value,
                "contentId": item.content_id,
            },
            customer_email=buyer.email,
        )
        return await self._finish_stripe_init(order, init.success, init.payment_id, init.link, init.error)

    async def stripe_init_subscription(
        self, tier: str, interval: Literal["month", "year"], buyer: Buyer
    ) -> CheckoutResult:
        item = await self._plan_item(tier, buyer)
        order = await self._create_order(item, buyer, None, PaymentProvider.STRIPE_LINK)
        if self.offline:
            return await self._offline_checkout(order)

        price = await self._stripe.create_price(
            amount_dt=order.amount_dt,
            interval=interval,
            product_name=f"{item.title} plan",
        )
        if not price.success or not price.value:
            raise BadRequestError(price.error or "Price creation failed")

        success_url, cancel_url = self._return_urls(
            "subscription", item.content_id, "&session_id={CHECKOUT_SESSION_ID}"
        )
        init = await self._stripe.create_subscription_session(
            price_id=price.value,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={"orderId": order.id, "userId": buyer.user_id, "tier": item.content_id},
            customer_email=buyer.email,
        )
        return await self._finish_stripe_init(order, init.success, init.payment_id, init.link, init.error)

    async def _finish_stripe_init(
        self,
        order: Order,
        success: bool,
        session_id: str | None,
        url: str | None,
        error: str | None,
    ) -> CheckoutResult:
        if not success or not session_id:
            logger.warning("Stripe checkout failed: %s", error, extra=_log_extra(order))
            raise BadRequestError(error or "Link checkout session creation failed")
        await self._orders.set_payment_id(order.id, session_id)
        return CheckoutResult(
            order_id=order.id,
            payment_id=session_id,
            provider=PaymentProvider.STRIPE_LINK,
            link=url,
        )

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def _find_order(self, payment_id: str) -> Order:
        order = await self._orders.get_by_payment_id(payment_id)
        if order is None:
            # Offline orders are looked up by their own id
            order = await self._orders.get(payment_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def _settle(self, order: Order, payment_method: str | None) -> Order:
        paid = await self._orders.mark_paid_if_pending(order.id, payment_method)
        if paid is None:
            PAYMENT_VERIFICATIONS.labels(result="already_paid").inc()
            current = await self._orders.get(order.id)
            return current or order

        PAYMENT_VERIFICATIONS.labels(result="paid").inc()
        logger.info("Order paid via %s", payment_method, extra=_log_extra(paid))
        if paid.promo_code:
            await self._promos.redeem(paid.promo_code)
        # The order is already paid; a failed grant must not lose the receipt.
        try:
            await self._access.grant(paid)
        except Exception:
            logger.exception("Access grant failed for paid order", extra=_log_extra(paid))
        await self._notifications.enqueue(
            NOTIFICATIONS_QUEUE,
            "payment_receipt",
            {
                "orderId": paid.id,
                "userId": paid.buyer_id,
                "amountDT": paid.amount_dt,
                "contentType": paid.content_type.value,
                "contentId": paid.content_id,
            },
        )
        return paid

    async def _gateway_verify(self, order: Order) -> GatewayVerification:
        if order.provider == PaymentProvider.OFFLINE:
            if not self.offline:
                raise BadRequestError("Offline payments are disabled")
            return GatewayVerification(success=True, status=FLOUCI_SUCCESS, payment_method="offline")
        if order.payment_id is None:
            raise BadRequestError("Payment not initialised")
        if order.provider == PaymentProvider.STRIPE_LINK:
            result = await self._stripe.verify(order.payment_id)
            if result.success and result.status == STRIPE_SUCCESS:
                return GatewayVerification(
                    success=True,
                    status=FLOUCI_SUCCESS,
                    payment_method=result.payment_method or "link",
                    customer_id=result.customer_id,
                )
            return result
        return await self._flouci.verify(order.payment_id)

    async def _reconcile(self, order: Order) -> VerifyOutcome:
        if order.status == OrderStatus.PAID:
            PAYMENT_VERIFICATIONS.labels(result="already_paid").inc()
            return VerifyOutcome("paid", order, order.payment_method)
        if order.status == OrderStatus.REFUNDED:
            return VerifyOutcome("refunded", order, order.payment_method)

        result = await self._gateway_verify(order)
        if not result.success:
            PAYMENT_VERIFICATIONS.labels(result="failed").inc()
            logger.warning("Verification failed: %s", result.error, extra=_log_extra(order))
            raise BadRequestError(result.error or "Payment verification failed")

        if result.status == FLOUCI_SUCCESS:
            paid = await self._settle(order, result.payment_method)
            return VerifyOutcome("paid", paid, paid.payment_method, result.customer_id)

        PAYMENT_VERIFICATIONS.labels(result="pending").inc()
        return VerifyOutcome(result.status or "pending", order, customer_id=result.customer_id)

    async def verify(self, payment_id: str) -> VerifyOutcome:
        return await self._reconcile(await self._find_order(payment_id))

    async def handle_flouci_webhook(self, raw_body: bytes, signature: str | None) -> VerifyOutcome:
        try:
            body = json.loads(raw_body or b"null")
        except ValueError:
            raise BadRequestError("Malformed webhook body") from None
        payment_id = body.get("payment_id") if isinstance(body, dict) else None
        if not payment_id:
            raise BadRequestError("payment_id is required")

        verify_signature(self._flouci_webhook_secret, raw_body, signature)
        WEBHOOK_EVENTS.labels(provider="flouci", result="accepted").inc()
        return await self.verify(str(payment_id))

    async def stripe_verify(self, session_id: str) -> VerifyOutcome:
        """Reconcile by Checkout Session id; offline orders settle without Stripe."""
        return await self._reconcile(await self._find_order(session_id))

    async def handle_stripe_webhook(self, payload: bytes, signature: str | None) -> None:
        if not signature:
            WEBHOOK_EVENTS.labels(provider="stripe-link", result="bad_signature").inc()
            raise UnauthorizedError("Missing stripe-signature header")

        event = self._stripe.construct_event(payload, signature)
        if not event.success:
            WEBHOOK_EVENTS.labels(provider="stripe-link", result="bad_signature").inc()
            logger.warning("Stripe webhook rejected: %s", event.error)
            raise UnauthorizedError("Invalid webhook signature")

        session = event.data
        if event.type != "checkout.session.completed" or field_of(session, "payment_status") != "paid":
            WEBHOOK_EVENTS.labels(provider="stripe-link", result="ignored").inc()
            return

        order = await self._orders.get_by_payment_id(field_of(session, "id") or "")
        if order is None:
            order_id = (field_of(session, "metadata") or {}).get("orderId")
            order = await self._orders.get(order_id) if order_id else None
        if order is None:
            WEBHOOK_EVENTS.labels(provider="stripe-link", result="ignored").inc()
            logger.warning("Stripe session %s has no matching order", field_of(session, "id"))
            return

        WEBHOOK_EVENTS.labels(provider="stripe-link", result="accepted").inc()
        if order.status == OrderStatus.PENDING:
            await self._settle(order, "link")

    async def customer_portal(self, customer_id: str, return_url: str | None = None) -> str:
        result = await self._stripe.create_customer_portal_session(
            customer_id, return_url or f"{self._frontend_url}/settings/billing"
        )
        if not result.success or not result.value:
            raise BadRequestError(result.error or "Failed to create customer portal session")
        return result.value

    # ------------------------------------------------------------------
    # Ledger queries and refunds
    # ------------------------------------------------------------------

    async def get_order(self, order_id: str) -> Order:
        order = await self._orders.get(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def list_orders(self, buyer_id: str) -> list[Order]:
        return await self._orders.list_by_buyer(buyer_id)

    async def refund(self, order_id: str) -> Order:
        order = await self.get_order(order_id)
        if not order.can_transition(OrderStatus.REFUNDED):
            raise BadRequestError(f"A {order.status} order cannot be refunded")

        if order.is_paid and order.provider == PaymentProvider.STRIPE_LINK and order.payment_id:
            result = await self._stripe.refund(order.payment_id)
            if not result.success:
                raise BadRequestError(result.error or "Refund failed")

        refunded = await self._orders.mark_refunded(order.id)
        if refunded is None:
            raise BadRequestError("Order cannot be refunded")
        logger.info("Order refunded", extra=_log_extra(refunded))
        return refunded

