from __future__ import annotations

import asyncio

import pytest

from shabaka.models.content import PurchasableType
from shabaka.models.order import InvalidOrderTransition, Order, OrderStatus, PaymentProvider
from shabaka.repos.order_repo import InMemoryOrderRepo


def _order(buyer: str = "buyer-1", promo: str | None = None) -> Order:
    return Order.new(
        buyer_id=buyer,
        creator_id="creator-1",
        content_type=PurchasableType.COURSE,
        content_id="course-1",
        amount_dt=30.0,
        platform_percent=9.0,
        platform_fixed_dt=0.5,
        platform_fee_dt=3.2,
        creator_net_dt=26.8,
        provider=PaymentProvider.FLOUCI,
        promo_code=promo,
    )


def test_new_order_is_pending_with_uppercase_promo() -> None:
    order = _order(promo="save10")
    assert order.status == OrderStatus.PENDING
    assert order.promo_code == "SAVE10"
    assert order.payment_id is None


def test_pending_can_be_paid_or_refunded() -> None:
    order = _order()
    assert order.mark_paid("card").status == OrderStatus.PAID
    assert order.mark_refunded().status == OrderStatus.REFUNDED


def test_paid_can_only_move_to_refunded() -> None:
    paid = _order().mark_paid("card")
    assert paid.can_transition(OrderStatus.REFUNDED)
    assert not paid.can_transition(OrderStatus.PENDING)
    with pytest.raises(InvalidOrderTransition):
        paid.transition(OrderStatus.PENDING)
    with pytest.raises(InvalidOrderTransition):
        paid.mark_paid("card")


def test_refunded_is_terminal() -> None:
    refunded = _order().mark_refunded()
    for target in OrderStatus:
        assert not refunded.can_transition(target)


def test_mark_paid_if_pending_has_a_single_winner() -> None:
    repo = InMemoryOrderRepo()
    order = _order()
    asyncio.run(repo.add(order))

    async def race() -> list[Order | None]:
        return list(
            await asyncio.gather(*(repo.mark_paid_if_pending(order.id, "card") for _ in range(5)))
        )

    results = asyncio.run(race())
    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    assert winners[0].status == OrderStatus.PAID
    assert winners[0].payment_method == "card"


def test_mark_paid_if_pending_refuses_refunded_order() -> None:
    repo = InMemoryOrderRepo()
    order = _order()
    asyncio.run(repo.add(order))
    asyncio.run(repo.mark_refunded(order.id))
    assert asyncio.run(repo.mark_paid_if_pending(order.id, "card")) is None


def test_lookup_by_payment_id() -> None:
    repo = InMemoryOrderRepo()
    order = _order()
    asyncio.run(repo.add(order))
    asyncio.run(repo.set_payment_id(order.id, "flouci-abc"))

    found = asyncio.run(repo.get_by_payment_id("flouci-abc"))
    assert found is not None
    assert found.id == order.id
    assert asyncio.run(repo.get_by_payment_id("missing")) is None


def test_list_by_buyer_is_scoped() -> None:
    repo = InMemoryOrderRepo()
    for buyer in ("a", "a", "b"):
        asyncio.run(repo.add(_order(buyer=buyer)))
    assert len(asyncio.run(repo.list_by_buyer("a"))) == 2
    assert len(asyncio.run(repo.list_by_buyer("b"))) == 1
