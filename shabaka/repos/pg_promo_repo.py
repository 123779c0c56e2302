"""PostgreSQL implementation of PromoCodeRepo."""

from __future__ import annotations

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shabaka.core.errors import ConflictError
from shabaka.db.tables import PromoCodeRow
from shabaka.models.promo_code import PromoCode, normalize_code


class PgPromoCodeRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get_by_code(self, code: str) -> PromoCode | None:
        stmt = select(PromoCodeRow).where(PromoCodeRow.code == normalize_code(code))
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_promo(row) if row is not None else None

    async def add(self, promo: PromoCode) -> None:
        row = PromoCodeRow(
            id=promo.id,
            code=promo.code,
            percent_off=promo.percent_off,
            amount_off_dt=promo.amount_off_dt,
            applies_to_type=promo.applies_to_type,
            applies_to_id=promo.applies_to_id,
            starts_at=promo.starts_at,
            ends_at=promo.ends_at,
            max_redemptions=promo.max_redemptions,
            redemptions_count=promo.redemptions_count,
            is_active=promo.is_active,
            allowed_emails=list(promo.allowed_emails),
            created_by=promo.created_by,
        )
        try:
            async with self._sessions.begin() as session:
                session.add(row)
        except IntegrityError:
            raise ConflictError(f"Promo code {promo.code} already exists") from None

    async def try_redeem(self, code: str) -> bool:
        stmt = (
            update(PromoCodeRow)
            .where(
                PromoCodeRow.code == normalize_code(code),
                or_(
                    PromoCodeRow.max_redemptions.is_(None),
                    PromoCodeRow.redemptions_count < PromoCodeRow.max_redemptions,
                ),
            )
            .values(redemptions_count=PromoCodeRow.redemptions_count + 1)
        )
        async with self._sessions.begin() as session:
            result = await session.execute(stmt)
        return result.rowcount == 1


def _row_to_promo(row: PromoCodeRow) -> PromoCode:
    return PromoCode(
        id=row.id,
        code=row.code,
        percent_off=row.percent_off,
        amount_off_dt=row.amount_off_dt,
        applies_to_type=row.applies_to_type,
        applies_to_id=row.applies_to_id,
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        max_redemptions=row.max_redemptions,
        redemptions_count=row.redemptions_count,
        is_active=row.is_active,
        allowed_emails=tuple(row.allowed_emails or ()),
        created_by=row.created_by,
    )
