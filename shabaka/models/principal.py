from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated access token.

    ``jti`` and ``expires_at`` come along so logout can revoke the very
    token that authenticated the request.
    """

    user_id: str
    roles: frozenset[str]
    jti: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, roles: set[str]) -> bool:
        return bool(self.roles & roles)

    def is_platform_admin(self) -> bool:
        return "admin" in self.roles
