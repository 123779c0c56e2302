from __future__ import annotations

from dataclasses import replace
from typing import Protocol

from shabaka.core.errors import ConflictError
from shabaka.models.user import User, normalize_email


class UserRepo(Protocol):
    async def get_by_id(self, user_id: str) -> User | None: ...
    async def get_by_email(self, email: str) -> User | None: ...
    async def add(self, user: User) -> None: ...
    async def update_password_hash(self, user_id: str, password_hash: str) -> None: ...


class InMemoryUserRepo:
    def __init__(self) -> None:
        self._by_email: dict[str, User] = {}
        self._by_id: dict[str, User] = {}

    async def get_by_id(self, user_id: str) -> User | None:
        return self._by_id.get(user_id)

    async def get_by_email(self, email: str) -> User | None:
        return self._by_email.get(normalize_email(email))

    async def add(self, user: User) -> None:
        if user.email in self._by_email:
            raise ConflictError("Email already registered")
        self._by_email[user.email] = user
        self._by_id[user.id] = user

    async def update_password_hash(self, user_id: str, password_hash: str) -> None:
        u = self._by_id.get(user_id)
        if u is None:
            raise KeyError("user not found")

        updated = replace(u, password_hash=password_hash)
        self._by_id[user_id] = updated
        self._by_email[updated.email] = updated
