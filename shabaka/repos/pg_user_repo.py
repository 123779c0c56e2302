"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.exc import IntegrityError

from shabaka.core.errors import ConflictError
from shabaka.db.tables import UserRow
from shabaka.models.user import User, normalize_email


class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get_by_id(self, user_id: str) -> User | None:
        async with self._sessions() as session:
            row = await session.get(UserRow, user_id)
            return _row_to_user(row) if row is not None else None

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(UserRow).where(UserRow.email == normalize_email(email))
        async with self._sessions() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return _row_to_user(row) if row is not None else None

    async def add(self, user: User) -> None:
        row = UserRow(
            id=user.id,
            email=user.email,
            password_hash=user.password_hash,
            name=user.name,
            roles=list(user.roles),
            is_active=user.is_active,
            created_at=user.created_at,
        )
        try:
            async with self._sessions.begin() as session:
                session.add(row)
        except IntegrityError:
            raise ConflictError("Email already registered") from None

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        stmt = (
            update(UserRow)
            .where(UserRow.id == user_id)
            .values(password_hash=password_hash)
        )
        async with self._sessions.begin() as session:
            await session.execute(stmt)


def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name or "",
        password_hash=row.password_hash,
        roles=tuple(row.roles) if row.roles else (),
        is_active=row.is_active,
        created_at=row.created_at,
    )
