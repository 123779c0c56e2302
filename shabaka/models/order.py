from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from shabaka.models.content import PurchasableType


class OrderStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentProvider(StrEnum):
    FLOUCI = "flouci"
    STRIPE_LINK = "stripe-link"
    OFFLINE = "offline"


# Allowed edges of the order state machine.  Nothing ever leads back to
# PENDING.
_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.REFUNDED}),
    OrderStatus.PAID: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.REFUNDED: frozenset(),
}


class InvalidOrderTransition(ValueError):
    def __init__(self, current: OrderStatus, target: OrderStatus) -> None:
        super().__init__(f"Order cannot move from {current} to {target}")
        self.current = current
        self.target = target


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Order:
    """One purchase attempt together with its fee breakdown."""

    id: str
    buyer_id: str
    creator_id: str
    content_type: PurchasableType
    content_id: str
    amount_dt: float
    platform_percent: float
    platform_fixed_dt: float
    platform_fee_dt: float
    creator_net_dt: float
    provider: PaymentProvider
    promo_code: str | None = None
    discount_dt: float = 0.0
    payment_id: str | None = None
    payment_method: str | None = None
    status: OrderStatus = OrderStatus.PENDING
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @staticmethod
    def new(
        *,
        buyer_id: str,
        creator_id: str,
        content_type: PurchasableType,
        content_id: str,
        amount_dt: float,
        platform_percent: float,
        platform_fixed_dt: float,
        platform_fee_dt: float,
        creator_net_dt: float,
        provider: PaymentProvider,
        promo_code: str | None = None,
        discount_dt: float = 0.0,
    ) -> Order:
        return Order(
            id=uuid4().hex,
            buyer_id=buyer_id,
            creator_id=creator_id,
            content_type=content_type,
            content_id=content_id,
            amount_dt=amount_dt,
            platform_percent=platform_percent,
            platform_fixed_dt=platform_fixed_dt,
            platform_fee_dt=platform_fee_dt,
            creator_net_dt=creator_net_dt,
            provider=provider,
            promo_code=promo_code.upper() if promo_code else None,
            discount_dt=discount_dt,
        )

    @property
    def is_paid(self) -> bool:
        return self.status == OrderStatus.PAID

    def can_transition(self, target: OrderStatus) -> bool:
        return target in _TRANSITIONS[self.status]

    def transition(self, target: OrderStatus, **changes: object) -> Order:
        """Return a copy in ``target`` state, or raise InvalidOrderTransition."""
        if not self.can_transition(target):
            raise InvalidOrderTransition(self.status, target)
        return replace(self, status=target, updated_at=_now(), **changes)  # type: ignore[arg-type]

    def mark_paid(self, payment_method: str | None) -> Order:
        return self.transition(OrderStatus.PAID, payment_method=payment_method)

    def mark_refunded(self) -> Order:
        return self.transition(OrderStatus.REFUNDED)

    def with_payment_id(self, payment_id: str) -> Order:
        return replace(self, payment_id=payment_id, updated_at=_now())
