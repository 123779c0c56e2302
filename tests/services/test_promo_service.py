from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from shabaka.core.errors import ConflictError
from shabaka.models.promo_code import PromoCode
from shabaka.repos.promo_repo import InMemoryPromoCodeRepo
from shabaka.services.promo_service import PromoService, apply_discount

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _service(*promos: PromoCode) -> tuple[PromoService, InMemoryPromoCodeRepo]:
    repo = InMemoryPromoCodeRepo()
    for promo in promos:
        asyncio.run(repo.add(promo))
    return PromoService(repo), repo


def _apply(service: PromoService, code: str | None, amount: float = 100.0, **kwargs):
    kwargs.setdefault("content_type", "course")
    kwargs.setdefault("content_id", "course-1")
    return asyncio.run(service.validate_and_apply(code, amount, now=NOW, **kwargs))


def test_percent_discount() -> None:
    service, _ = _service(PromoCode.new(code="save20", percent_off=20))
    result = _apply(service, "SAVE20")
    assert result.valid
    assert result.discount_dt == 20.0
    assert result.final_amount_dt == 80.0
    assert result.applied_code == "SAVE20"


def test_code_lookup_is_case_insensitive() -> None:
    service, _ = _service(PromoCode.new(code="Spring", amount_off_dt=5))
    result = _apply(service, "  spring ")
    assert result.valid
    assert result.final_amount_dt == 95.0


@pytest.mark.parametrize(
    ("percent", "fixed", "amount", "expected_final"),
    [
        (10, 5, 100.0, 85.0),
        (0, 12.5, 40.0, 27.5),
        (50, 60, 100.0, 0.0),
        (100, 0, 19.99, 0.0),
        (15, 0, 33.33, 28.33),
    ],
)
def test_discounts_stack_and_floor_at_zero(
    percent: float, fixed: float, amount: float, expected_final: float
) -> None:
    promo = PromoCode.new(code="X", percent_off=percent, amount_off_dt=fixed)
    _, final = apply_discount(promo, amount)
    assert final == expected_final
    assert final == max(0.0, round(amount - (amount * percent / 100 + fixed), 2))


def test_expired_code_rejected_with_original_amount() -> None:
    service, _ = _service(PromoCode.new(code="OLD", percent_off=50, ends_at=NOW - timedelta(days=1)))
    result = _apply(service, "OLD")
    assert not result.valid
    assert "expired" in (result.reason or "")
    assert result.final_amount_dt == result.original_amount_dt == 100.0
    assert result.discount_dt == 0.0


def test_not_yet_started_code_rejected() -> None:
    service, _ = _service(PromoCode.new(code="SOON", percent_off=50, starts_at=NOW + timedelta(hours=1)))
    assert not _apply(service, "SOON").valid


def test_inactive_code_rejected() -> None:
    service, _ = _service(PromoCode.new(code="OFF", percent_off=50, is_active=False))
    result = _apply(service, "OFF")
    assert not result.valid
    assert result.reason == "Promo code is inactive"


def test_unknown_code_rejected() -> None:
    service, _ = _service()
    result = _apply(service, "NOPE")
    assert not result.valid
    assert result.reason == "Invalid promo code"


def test_empty_code_is_a_silent_no_op() -> None:
    service, _ = _service()
    result = _apply(service, "   ")
    assert not result.valid
    assert result.reason is None
    assert result.final_amount_dt == 100.0


def test_content_type_scope_enforced() -> None:
    service, _ = _service(PromoCode.new(code="COURSES", percent_off=10, applies_to_type="course"))
    assert _apply(service, "COURSES", content_type="course").valid
    result = _apply(service, "COURSES", content_type="community", content_id="community-1")
    assert not result.valid
    assert "content type" in (result.reason or "")


def test_content_id_scope_enforced() -> None:
    service, _ = _service(
        PromoCode.new(code="ONE", percent_off=10, applies_to_type="course", applies_to_id="course-1")
    )
    assert _apply(service, "ONE", content_id="course-1").valid
    assert not _apply(service, "ONE", content_id="course-2").valid


def test_allowed_emails_enforced_when_buyer_email_known() -> None:
    service, _ = _service(
        PromoCode.new(code="VIP", percent_off=30, allowed_emails=["Friend@Example.com"])
    )
    assert _apply(service, "VIP", buyer_email="friend@example.com").valid
    assert not _apply(service, "VIP", buyer_email="stranger@example.com").valid


def test_cap_reached_rejected() -> None:
    service, _ = _service(PromoCode.new(code="FIRST10", percent_off=10, max_redemptions=1, redemptions_count=1))
    result = _apply(service, "FIRST10")
    assert not result.valid
    assert "limit" in (result.reason or "")


def test_validate_does_not_count_a_redemption() -> None:
    service, repo = _service(PromoCode.new(code="SAVE", percent_off=10, max_redemptions=5))
    _apply(service, "SAVE")
    _apply(service, "SAVE")
    promo = asyncio.run(repo.get_by_code("SAVE"))
    assert promo is not None
    assert promo.redemptions_count == 0


def test_redeem_increments_until_cap() -> None:
    service, repo = _service(PromoCode.new(code="TWO", percent_off=10, max_redemptions=2))
    assert asyncio.run(service.redeem("two"))
    assert asyncio.run(service.redeem("TWO"))
    assert not asyncio.run(service.redeem("TWO"))
    promo = asyncio.run(repo.get_by_code("TWO"))
    assert promo is not None
    assert promo.redemptions_count == 2


def test_duplicate_code_conflicts() -> None:
    _, repo = _service(PromoCode.new(code="DUP", percent_off=10))
    with pytest.raises(ConflictError):
        asyncio.run(repo.add(PromoCode.new(code="dup", percent_off=5)))
