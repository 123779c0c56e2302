from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str
    name: str
    password_hash: str
    roles: tuple[str, ...] = ()
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def new(
        *,
        email: str,
        password_hash: str,
        name: str = "",
        roles: tuple[str, ...] = ("user",),
    ) -> User:
        return User(
            id=uuid4().hex,
            email=normalize_email(email),
            name=name,
            password_hash=password_hash,
            roles=roles,
        )
