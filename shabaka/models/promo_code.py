from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4


def normalize_code(code: str) -> str:
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class PromoCode:
    """A reusable discount rule, stored under its uppercase code."""

    id: str
    code: str
    percent_off: float = 0.0
    amount_off_dt: float = 0.0
    applies_to_type: str | None = None
    applies_to_id: str | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    max_redemptions: int | None = None
    redemptions_count: int = 0
    is_active: bool = True
    allowed_emails: tuple[str, ...] = ()
    created_by: str | None = None

    @staticmethod
    def new(*, code: str, **fields: object) -> PromoCode:
        emails = fields.pop("allowed_emails", ())
        return PromoCode(
            id=uuid4().hex,
            code=normalize_code(code),
            allowed_emails=tuple(str(e).strip().lower() for e in emails),  # type: ignore[attr-defined]
            **fields,  # type: ignore[arg-type]
        )

    @property
    def cap_reached(self) -> bool:
        return (
            self.max_redemptions is not None
            and self.redemptions_count >= self.max_redemptions
        )
