"""Platform fee split.

A creator on a paid plan is charged that plan's transaction fee;
everyone else pays the default rate.  Amounts are rounded half-up to
two decimals, and the fee is capped at the amount so that

    amount_dt == platform_fee_dt + creator_net_dt

holds exactly and the creator's net is never negative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from shabaka.core.errors import BadRequestError
from shabaka.repos.catalog_repo import CatalogRepo

logger = logging.getLogger(__name__)

DEFAULT_PERCENT = 9.0
DEFAULT_FIXED_DT = 0.5

_CENTS = Decimal("0.01")


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class FeeBreakdown:
    amount_dt: float
    platform_percent: float
    platform_fixed_dt: float
    platform_fee_dt: float
    creator_net_dt: float


def compute_breakdown(amount: float, percent: float, fixed_dt: float) -> FeeBreakdown:
    if amount <= 0:
        raise BadRequestError("Invalid amount")

    gross = round2(Decimal(str(amount)))
    fee = round2(gross * Decimal(str(percent)) / 100 + Decimal(str(fixed_dt)))
    fee = min(fee, gross)
    net = gross - fee
    return FeeBreakdown(
        amount_dt=float(gross),
        platform_percent=percent,
        platform_fixed_dt=fixed_dt,
        platform_fee_dt=float(fee),
        creator_net_dt=float(net),
    )


class FeeService:
    def __init__(self, catalog: CatalogRepo) -> None:
        self._catalog = catalog

    async def rate_for_creator(self, creator_id: str) -> tuple[float, float]:
        subscription = await self._catalog.get_subscription(creator_id)
        if subscription is None or not subscription.is_active:
            return DEFAULT_PERCENT, DEFAULT_FIXED_DT
        plan = await self._catalog.get_plan(subscription.plan_tier)
        if plan is None:
            logger.warning(
                "Creator %s subscribed to unknown plan %s, using default fee",
                creator_id,
                subscription.plan_tier,
            )
            return DEFAULT_PERCENT, DEFAULT_FIXED_DT
        return plan.transaction_fee_percent, plan.transaction_fixed_fee_dt

    async def calculate_for_amount(self, amount: float, creator_id: str) -> FeeBreakdown:
        percent, fixed = await self.rate_for_creator(creator_id)
        return compute_breakdown(amount, percent, fixed)
