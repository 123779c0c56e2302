from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

CODE_TTL = timedelta(minutes=10)


class CodePurpose(StrEnum):
    TWO_FACTOR = "two_factor"
    PASSWORD_RESET = "password_reset"


def generate_code() -> str:
    """Six decimal digits, leading zeros kept."""
    return f"{secrets.randbelow(1_000_000):06d}"


@dataclass(frozen=True, slots=True)
class VerificationCode:
    """A single-use code bound to one user and one purpose."""

    user_id: str
    code: str
    purpose: CodePurpose
    expires_at: datetime
    remember_me: bool = False

    @staticmethod
    def new(
        *, user_id: str, purpose: CodePurpose, now: datetime, remember_me: bool = False
    ) -> VerificationCode:
        return VerificationCode(
            user_id=user_id,
            code=generate_code(),
            purpose=purpose,
            expires_at=now + CODE_TTL,
            remember_me=remember_me,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
