"""PostgreSQL implementation of OrderRepo.

The paid transition is a single conditional UPDATE; ``rowcount`` tells
the caller whether it won the race.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shabaka.db.tables import OrderRow
from shabaka.models.content import PurchasableType
from shabaka.models.order import Order, OrderStatus, PaymentProvider


class PgOrderRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def add(self, order: Order) -> None:
        async with self._sessions.begin() as session:
            session.add(_order_to_row(order))

    async def get(self, order_id: str) -> Order | None:
        async with self._sessions() as session:
            row = await session.get(OrderRow, order_id)
            return _row_to_order(row) if row is not None else None

    async def get_by_payment_id(self, payment_id: str) -> Order | None:
        stmt = select(OrderRow).where(OrderRow.payment_id == payment_id).limit(1)
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_order(row) if row is not None else None

    async def set_payment_id(self, order_id: str, payment_id: str) -> Order | None:
        stmt = (
            update(OrderRow)
            .where(OrderRow.id == order_id)
            .values(payment_id=payment_id, updated_at=datetime.now(UTC))
        )
        async with self._sessions.begin() as session:
            result = await session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(order_id)

    async def mark_paid_if_pending(
        self, order_id: str, payment_method: str | None
    ) -> Order | None:
        stmt = (
            update(OrderRow)
            .where(OrderRow.id == order_id, OrderRow.status == OrderStatus.PENDING.value)
            .values(
                status=OrderStatus.PAID.value,
                payment_method=payment_method,
                updated_at=datetime.now(UTC),
            )
        )
        async with self._sessions.begin() as session:
            result = await session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(order_id)

    async def mark_refunded(self, order_id: str) -> Order | None:
        stmt = (
            update(OrderRow)
            .where(
                OrderRow.id == order_id,
                OrderRow.status.in_([OrderStatus.PENDING.value, OrderStatus.PAID.value]),
            )
            .values(status=OrderStatus.REFUNDED.value, updated_at=datetime.now(UTC))
        )
        async with self._sessions.begin() as session:
            result = await session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(order_id)

    async def list_by_buyer(self, buyer_id: str) -> list[Order]:
        stmt = (
            select(OrderRow)
            .where(OrderRow.buyer_id == buyer_id)
            .order_by(OrderRow.created_at.desc())
        )
        async with self._sessions() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_row_to_order(r) for r in rows]


def _order_to_row(order: Order) -> OrderRow:
    return OrderRow(
        id=order.id,
        buyer_id=order.buyer_id,
        creator_id=order.creator_id,
        content_type=order.content_type.value,
        content_id=order.content_id,
        amount_dt=order.amount_dt,
        platform_percent=order.platform_percent,
        platform_fixed_dt=order.platform_fixed_dt,
        platform_fee_dt=order.platform_fee_dt,
        creator_net_dt=order.creator_net_dt,
        provider=order.provider.value,
        promo_code=order.promo_code,
        discount_dt=order.discount_dt,
        payment_id=order.payment_id,
        payment_method=order.payment_method,
        status=order.status.value,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def _row_to_order(row: OrderRow) -> Order:
    return Order(
        id=row.id,
        buyer_id=row.buyer_id,
        creator_id=row.creator_id,
        content_type=PurchasableType(row.content_type),
        content_id=row.content_id,
        amount_dt=row.amount_dt,
        platform_percent=row.platform_percent,
        platform_fixed_dt=row.platform_fixed_dt,
        platform_fee_dt=row.platform_fee_dt,
        creator_net_dt=row.creator_net_dt,
        provider=PaymentProvider(row.provider),
        promo_code=row.promo_code,
        discount_dt=row.discount_dt,
        payment_id=row.payment_id,
        payment_method=row.payment_method,
        status=OrderStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
