"""JWT access and refresh tokens (HS256).

Access and refresh tokens are signed with different secrets, so one can
never be presented as the other.  Both carry a unique ``jti`` for the
revocation list and an ``iat`` for the user-wide revoke-all check.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from shabaka.core.config import SETTINGS

ALGORITHM = "HS256"

ACCESS_TOKEN_TTL = timedelta(minutes=15)
ACCESS_TOKEN_TTL_REMEMBER = timedelta(hours=2)
REFRESH_TOKEN_TTL = timedelta(days=7)
REFRESH_TOKEN_TTL_REMEMBER = timedelta(days=30)

_REQUIRED_CLAIMS = ["sub", "exp", "iat", "jti"]


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_at: datetime


def _encode(payload: dict, secret: str) -> str:
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def _decode(token: str, secret: str) -> dict:
    return jwt.decode(
        token,
        secret,
        algorithms=[ALGORITHM],
        issuer=SETTINGS.jwt_issuer,
        audience=SETTINGS.jwt_audience,
        options={"require": _REQUIRED_CLAIMS},
    )


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    remember_me: bool = False,
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(UTC)
    ttl = ACCESS_TOKEN_TTL_REMEMBER if remember_me else ACCESS_TOKEN_TTL
    payload = {
        "sub": sub,
        "iss": SETTINGS.jwt_issuer,
        "aud": SETTINGS.jwt_audience,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["user"],
    }
    return _encode(payload, SETTINGS.jwt_secret)


def decode_access_token(token: str) -> dict:
    """Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure."""
    return _decode(token, SETTINGS.jwt_secret)


def create_refresh_token(
    *, sub: str, remember_me: bool = False, now: datetime | None = None
) -> str:
    """Identity only; roles are re-read from the user store on refresh."""
    now = now or datetime.now(UTC)
    ttl = REFRESH_TOKEN_TTL_REMEMBER if remember_me else REFRESH_TOKEN_TTL
    payload = {
        "sub": sub,
        "iss": SETTINGS.jwt_issuer,
        "aud": SETTINGS.jwt_audience,
        "exp": now + ttl,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "rme": remember_me,
    }
    return _encode(payload, SETTINGS.jwt_refresh_secret)


def decode_refresh_token(token: str) -> dict:
    return _decode(token, SETTINGS.jwt_refresh_secret)


def issue_pair(*, sub: str, roles: list[str], remember_me: bool = False) -> TokenPair:
    now = datetime.now(UTC)
    access_ttl = ACCESS_TOKEN_TTL_REMEMBER if remember_me else ACCESS_TOKEN_TTL
    refresh_ttl = REFRESH_TOKEN_TTL_REMEMBER if remember_me else REFRESH_TOKEN_TTL
    return TokenPair(
        access_token=create_access_token(sub=sub, roles=roles, remember_me=remember_me, now=now),
        refresh_token=create_refresh_token(sub=sub, remember_me=remember_me, now=now),
        expires_in=int(access_ttl.total_seconds()),
        refresh_expires_at=now + refresh_ttl,
    )


def claim_time(claims: dict, name: str) -> datetime:
    """PyJWT hands back numeric dates; turn one into an aware datetime."""
    return datetime.fromtimestamp(claims[name], tz=UTC)
