"""Revocation list for JWTs.

Two levels are checked on every authenticated request:

  - a single token, by ``jti`` (logout, refresh rotation), kept until
    the token would have expired anyway
  - every token of a user, by a revoke-all timestamp (revoke-all,
    password reset): a token whose ``iat`` is not after that timestamp
    is revoked.  The timestamp is kept for 90 days, longer than any
    token lives.

``iat`` has one-second resolution, so a token minted in the same second
as a revoke-all is treated as revoked.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable

from shabaka.core.metrics import TOKEN_BLACKLIST_CHECKS

REVOKE_ALL_TTL_SECONDS = 90 * 24 * 3600


@runtime_checkable
class TokenBlacklist(Protocol):
    async def revoke(self, jti: str, expires_at: float) -> None:
        """Blacklist one token until it would have expired."""
        ...

    async def revoke_all(self, user_id: str, at: float | None = None) -> None:
        """Revoke every token of ``user_id`` issued up to ``at``."""
        ...

    async def is_revoked(self, jti: str, user_id: str | None = None, issued_at: float | None = None) -> bool: ...


def _record(revoked: bool) -> bool:
    TOKEN_BLACKLIST_CHECKS.labels(result="revoked" if revoked else "valid").inc()
    return revoked


class InMemoryTokenBlacklist:
    """Per-process blacklist for tests and local dev."""

    def __init__(self) -> None:
        # jti -> expiry timestamp (Unix seconds)
        self._revoked: dict[str, float] = {}
        # user_id -> revoke-all timestamp
        self._revoked_users: dict[str, float] = {}

    async def revoke(self, jti: str, expires_at: float) -> None:
        if expires_at <= time.time():
            return
        self._revoked.setdefault(jti, expires_at)

    async def revoke_all(self, user_id: str, at: float | None = None) -> None:
        self._revoked_users[user_id] = at if at is not None else time.time()

    async def is_revoked(
        self, jti: str, user_id: str | None = None, issued_at: float | None = None
    ) -> bool:
        exp = self._revoked.get(jti)
        if exp is not None:
            if exp >= time.time():
                return _record(True)
            del self._revoked[jti]
        if user_id is not None and issued_at is not None:
            cutoff = self._revoked_users.get(user_id)
            if cutoff is not None and issued_at <= cutoff:
                return _record(True)
        return _record(False)


class RedisTokenBlacklist:
    """Shared across API instances; entries expire on their own."""

    _JTI_PREFIX = "blacklist:jti:"
    _USER_PREFIX = "blacklist:user:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def revoke(self, jti: str, expires_at: float) -> None:
        ttl_seconds = int(expires_at - time.time())
        if ttl_seconds <= 0:
            return
        # NX: a second revoke of the same jti is a no-op
        await self._redis.set(f"{self._JTI_PREFIX}{jti}", "1", ex=ttl_seconds, nx=True)

    async def revoke_all(self, user_id: str, at: float | None = None) -> None:
        stamp = at if at is not None else time.time()
        await self._redis.setex(f"{self._USER_PREFIX}{user_id}", REVOKE_ALL_TTL_SECONDS, repr(stamp))

    async def is_revoked(
        self, jti: str, user_id: str | None = None, issued_at: float | None = None
    ) -> bool:
        if await self._redis.exists(f"{self._JTI_PREFIX}{jti}"):
            return _record(True)
        if user_id is not None and issued_at is not None:
            cutoff = await self._redis.get(f"{self._USER_PREFIX}{user_id}")
            if cutoff is not None and issued_at <= float(cutoff):
                return _record(True)
        return _record(False)
