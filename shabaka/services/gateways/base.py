"""Value types every payment gateway wrapper returns.

Wrappers never raise for remote failures: a timeout, a non-2xx answer
or an SDK error comes back as ``success=False`` with ``error`` set, and
the payment service decides what that means for the order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class GatewayInit:
    success: bool
    payment_id: str | None = None
    link: str | None = None
    qr_code: str | None = None
    error: str | None = None

    @staticmethod
    def failed(error: str) -> GatewayInit:
        return GatewayInit(success=False, error=error)


@dataclass(frozen=True, slots=True)
class GatewayVerification:
    success: bool
    status: str | None = None
    amount: float | None = None
    payment_method: str | None = None
    customer_id: str | None = None
    transaction_date: str | None = None
    metadata: dict[str, Any] | None = None
    error: str | None = None

    @staticmethod
    def failed(error: str) -> GatewayVerification:
        return GatewayVerification(success=False, error=error)


def to_millimes(amount_dt: float) -> int:
    """Dinar amounts go over the wire in the 1/1000 subunit."""
    return round(amount_dt * 1000)


class RedirectGateway(Protocol):
    """A hosted-checkout gateway: create a payment, then poll its status."""

    provider: str

    async def init(
        self,
        amount_dt: float,
        success_url: str,
        fail_url: str,
        metadata: dict[str, Any] | None = None,
    ) -> GatewayInit: ...

    async def verify(self, payment_id: str) -> GatewayVerification: ...
