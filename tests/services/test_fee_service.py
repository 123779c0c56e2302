from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from shabaka.core.errors import BadRequestError
from shabaka.models.catalog import PlanTier, Subscription, SubscriptionStatus
from shabaka.repos.catalog_repo import InMemoryCatalogRepo
from shabaka.services.fee_service import (
    DEFAULT_FIXED_DT,
    DEFAULT_PERCENT,
    FeeService,
    compute_breakdown,
)


def test_default_rate_split() -> None:
    fees = compute_breakdown(50.0, DEFAULT_PERCENT, DEFAULT_FIXED_DT)
    # 50 * 9% + 0.5 = 5.0
    assert fees.platform_fee_dt == 5.0
    assert fees.creator_net_dt == 45.0
    assert fees.amount_dt == 50.0


def test_fee_rounds_half_up() -> None:
    # 10.05 * 3.9% = 0.39195 -> + 0.5 = 0.89195 -> 0.89
    fees = compute_breakdown(10.05, 3.9, 0.5)
    assert fees.platform_fee_dt == 0.89
    assert fees.creator_net_dt == 9.16


@pytest.mark.parametrize("amount", [0.01, 0.3, 0.5, 1.0, 7.77, 33.33, 99.99, 1234.56])
def test_fee_plus_net_equals_amount(amount: float) -> None:
    fees = compute_breakdown(amount, DEFAULT_PERCENT, DEFAULT_FIXED_DT)
    assert round(fees.platform_fee_dt + fees.creator_net_dt, 2) == fees.amount_dt
    assert fees.creator_net_dt >= 0


def test_fee_capped_at_amount_for_tiny_payments() -> None:
    fees = compute_breakdown(0.3, DEFAULT_PERCENT, DEFAULT_FIXED_DT)
    assert fees.platform_fee_dt == 0.3
    assert fees.creator_net_dt == 0.0


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amount_rejected(amount: float) -> None:
    with pytest.raises(BadRequestError, match="Invalid amount"):
        compute_breakdown(amount, DEFAULT_PERCENT, DEFAULT_FIXED_DT)


def test_creator_without_subscription_pays_default_rate() -> None:
    service = FeeService(InMemoryCatalogRepo())
    fees = asyncio.run(service.calculate_for_amount(100.0, "creator-x"))
    assert fees.platform_percent == DEFAULT_PERCENT
    assert fees.platform_fee_dt == 9.5


def test_active_plan_rate_applies() -> None:
    catalog = InMemoryCatalogRepo()
    asyncio.run(
        catalog.save_subscription(Subscription.activate(user_id="creator-x", tier=PlanTier.PRO))
    )
    service = FeeService(catalog)

    fees = asyncio.run(service.calculate_for_amount(100.0, "creator-x"))

    assert fees.platform_percent == 2.8
    assert fees.platform_fixed_dt == 0.5
    assert fees.platform_fee_dt == 3.3
    assert fees.creator_net_dt == 96.7


def test_canceled_plan_falls_back_to_default() -> None:
    catalog = InMemoryCatalogRepo()
    now = datetime.now(UTC)
    asyncio.run(
        catalog.save_subscription(
            Subscription(
                user_id="creator-x",
                plan_tier=PlanTier.GROWTH,
                status=SubscriptionStatus.CANCELED,
                current_period_start=now - timedelta(days=40),
                current_period_end=now - timedelta(days=10),
            )
        )
    )
    fees = asyncio.run(FeeService(catalog).calculate_for_amount(100.0, "creator-x"))
    assert fees.platform_percent == DEFAULT_PERCENT
