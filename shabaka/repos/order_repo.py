"""Order ledger storage.

``mark_paid_if_pending`` is the only way an order becomes paid.  It is
a compare-and-swap: exactly one caller wins for a given order, and that
caller alone performs the grant-access side effect.  Concurrent verify
polling and webhook delivery therefore cannot double-grant.
"""

from __future__ import annotations

from typing import Protocol

from shabaka.models.order import Order, OrderStatus


class OrderRepo(Protocol):
    async def add(self, order: Order) -> None: ...
    async def get(self, order_id: str) -> Order | None: ...
    async def get_by_payment_id(self, payment_id: str) -> Order | None: ...
    async def set_payment_id(self, order_id: str, payment_id: str) -> Order | None: ...
    async def mark_paid_if_pending(
        self, order_id: str, payment_method: str | None
    ) -> Order | None: ...
    async def mark_refunded(self, order_id: str) -> Order | None: ...
    async def list_by_buyer(self, buyer_id: str) -> list[Order]: ...


class InMemoryOrderRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, Order] = {}

    async def add(self, order: Order) -> None:
        self._by_id[order.id] = order

    async def get(self, order_id: str) -> Order | None:
        return self._by_id.get(order_id)

    async def get_by_payment_id(self, payment_id: str) -> Order | None:
        for order in self._by_id.values():
            if order.payment_id == payment_id:
                return order
        return None

    async def set_payment_id(self, order_id: str, payment_id: str) -> Order | None:
        order = self._by_id.get(order_id)
        if order is None:
            return None
        updated = order.with_payment_id(payment_id)
        self._by_id[order_id] = updated
        return updated

    async def mark_paid_if_pending(
        self, order_id: str, payment_method: str | None
    ) -> Order | None:
        # No await between the check and the write: atomic on the event loop.
        order = self._by_id.get(order_id)
        if order is None or order.status != OrderStatus.PENDING:
            return None
        updated = order.mark_paid(payment_method)
        self._by_id[order_id] = updated
        return updated

    async def mark_refunded(self, order_id: str) -> Order | None:
        order = self._by_id.get(order_id)
        if order is None or not order.can_transition(OrderStatus.REFUNDED):
            return None
        updated = order.mark_refunded()
        self._by_id[order_id] = updated
        return updated

    async def list_by_buyer(self, buyer_id: str) -> list[Order]:
        orders = [o for o in self._by_id.values() if o.buyer_id == buyer_id]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)
