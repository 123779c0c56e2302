"""PostgreSQL implementation of VerificationCodeRepo."""

from __future__ import annotations

import hmac
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shabaka.db.tables import VerificationCodeRow
from shabaka.models.verification_code import CodePurpose, VerificationCode


class PgVerificationCodeRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def replace(self, code: VerificationCode) -> None:
        async with self._sessions.begin() as session:
            await session.execute(
                delete(VerificationCodeRow).where(
                    VerificationCodeRow.user_id == code.user_id,
                    VerificationCodeRow.purpose == code.purpose.value,
                )
            )
            session.add(
                VerificationCodeRow(
                    user_id=code.user_id,
                    purpose=code.purpose.value,
                    code=code.code,
                    expires_at=code.expires_at,
                    remember_me=code.remember_me,
                )
            )

    async def consume(
        self, user_id: str, purpose: CodePurpose, code: str, now: datetime
    ) -> VerificationCode | None:
        async with self._sessions.begin() as session:
            row = await session.get(
                VerificationCodeRow, (user_id, purpose.value), with_for_update=True
            )
            if row is None or not hmac.compare_digest(row.code, code):
                return None
            stored = VerificationCode(
                user_id=row.user_id,
                code=row.code,
                purpose=CodePurpose(row.purpose),
                expires_at=row.expires_at,
                remember_me=row.remember_me,
            )
            await session.delete(row)
        if stored.is_expired(now):
            return None
        return stored
