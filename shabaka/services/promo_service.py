"""Promo code validation and discount computation.

``validate_and_apply`` is read-only.  Counting a redemption happens
separately, through ``redeem``, once the order it was used on is paid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

from shabaka.core.metrics import PROMO_REDEMPTIONS
from shabaka.models.promo_code import PromoCode, normalize_code
from shabaka.repos.promo_repo import PromoCodeRepo
from shabaka.services.fee_service import round2

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PromoResult:
    valid: bool
    original_amount_dt: float
    discount_dt: float
    final_amount_dt: float
    reason: str | None = None
    applied_code: str | None = None

    @staticmethod
    def rejected(amount_dt: float, reason: str | None = None) -> PromoResult:
        return PromoResult(
            valid=False,
            original_amount_dt=amount_dt,
            discount_dt=0.0,
            final_amount_dt=amount_dt,
            reason=reason,
        )


def rejection_reason(
    promo: PromoCode,
    *,
    now: datetime,
    content_type: str,
    content_id: str,
    buyer_email: str | None,
) -> str | None:
    """First failing usability predicate, or None when the code applies."""
    if not promo.is_active:
        return "Promo code is inactive"
    if promo.starts_at is not None and now < promo.starts_at:
        return "Promo code is not active yet"
    if promo.ends_at is not None and now > promo.ends_at:
        return "Promo code has expired"
    if promo.cap_reached:
        return "Promo code redemption limit reached"
    if promo.allowed_emails and buyer_email:
        if buyer_email.strip().lower() not in promo.allowed_emails:
            return "Promo code is not available for this user"
    if promo.applies_to_type and promo.applies_to_type != content_type:
        return "Promo code does not apply to this content type"
    if promo.applies_to_id and promo.applies_to_id != content_id:
        return "Promo code does not apply to this item"
    return None


def apply_discount(promo: PromoCode, amount_dt: float) -> tuple[float, float]:
    """Return (discount, final) with both parts stacked and final floored at 0."""
    amount = Decimal(str(amount_dt))
    discount = amount * Decimal(str(promo.percent_off)) / 100 + Decimal(
        str(promo.amount_off_dt)
    )
    discount = round2(discount)
    final = max(Decimal(0), amount - discount)
    return float(discount), float(round2(final))


class PromoService:
    def __init__(self, repo: PromoCodeRepo) -> None:
        self._repo = repo

    async def validate_and_apply(
        self,
        code: str | None,
        amount_dt: float,
        content_type: str,
        content_id: str,
        buyer_email: str | None = None,
        *,
        now: datetime | None = None,
    ) -> PromoResult:
        if not code or not code.strip():
            return PromoResult.rejected(amount_dt)

        promo = await self._repo.get_by_code(code)
        if promo is None:
            return PromoResult.rejected(amount_dt, "Invalid promo code")

        reason = rejection_reason(
            promo,
            now=now or datetime.now(UTC),
            content_type=content_type,
            content_id=content_id,
            buyer_email=buyer_email,
        )
        if reason is not None:
            return PromoResult.rejected(amount_dt, reason)

        discount, final = apply_discount(promo, amount_dt)
        return PromoResult(
            valid=True,
            original_amount_dt=amount_dt,
            discount_dt=discount,
            final_amount_dt=final,
            applied_code=promo.code,
        )

    async def redeem(self, code: str) -> bool:
        redeemed = await self._repo.try_redeem(code)
        PROMO_REDEMPTIONS.labels(result="redeemed" if redeemed else "cap_reached").inc()
        if not redeemed:
            logger.warning("Promo %s not counted: cap reached", normalize_code(code))
        return redeemed
