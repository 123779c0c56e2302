from __future__ import annotations

import hmac
from datetime import datetime
from typing import Protocol

from shabaka.models.verification_code import CodePurpose, VerificationCode


class VerificationCodeRepo(Protocol):
    async def replace(self, code: VerificationCode) -> None: ...
    async def consume(
        self, user_id: str, purpose: CodePurpose, code: str, now: datetime
    ) -> VerificationCode | None: ...


class InMemoryVerificationCodeRepo:
    """One live code per (user, purpose); issuing a new one drops the old."""

    def __init__(self) -> None:
        self._codes: dict[tuple[str, CodePurpose], VerificationCode] = {}

    async def replace(self, code: VerificationCode) -> None:
        self._codes[(code.user_id, code.purpose)] = code

    async def consume(
        self, user_id: str, purpose: CodePurpose, code: str, now: datetime
    ) -> VerificationCode | None:
        stored = self._codes.get((user_id, purpose))
        if stored is None or not hmac.compare_digest(stored.code, code):
            return None
        del self._codes[(user_id, purpose)]
        if stored.is_expired(now):
            return None
        return stored
