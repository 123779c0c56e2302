from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from shabaka.core.errors import ConflictError
from shabaka.models.promo_code import PromoCode, normalize_code


class PromoCodeRepo(Protocol):
    async def get_by_code(self, code: str) -> PromoCode | None: ...
    async def add(self, promo: PromoCode) -> None: ...
    async def try_redeem(self, code: str) -> bool: ...


class InMemoryPromoCodeRepo:
    def __init__(self) -> None:
        self._by_code: dict[str, PromoCode] = {}

    async def get_by_code(self, code: str) -> PromoCode | None:
        return self._by_code.get(normalize_code(code))

    async def add(self, promo: PromoCode) -> None:
        if promo.code in self._by_code:
            raise ConflictError(f"Promo code {promo.code} already exists")
        self._by_code[promo.code] = promo

    async def try_redeem(self, code: str) -> bool:
        """Increment the redemption counter unless the cap is reached."""
        promo = self._by_code.get(normalize_code(code))
        if promo is None or promo.cap_reached:
            return False
        self._by_code[promo.code] = replace(
            promo, redemptions_count=promo.redemptions_count + 1
        )
        return True
