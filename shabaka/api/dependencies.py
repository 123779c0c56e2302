from __future__ import annotations

import logging
from typing import Annotated

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from shabaka.container import get_token_blacklist
from shabaka.core.errors import ForbiddenError, UnauthorizedError
from shabaka.models.principal import Principal
from shabaka.services import token_service
from shabaka.services.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
    blacklist: Annotated[TokenBlacklist, Depends(get_token_blacklist)],
) -> Principal:
    """Validate the bearer token and return the caller's Principal.

    Rejects expired, malformed and revoked tokens with 401.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise UnauthorizedError("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise UnauthorizedError("Invalid token") from None

    if await blacklist.is_revoked(claims["jti"], claims["sub"], claims["iat"]):
        logger.warning("Revoked token rejected user=%s", claims["sub"])
        raise UnauthorizedError("Token has been revoked")

    return Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
        jti=claims["jti"],
        issued_at=token_service.claim_time(claims, "iat"),
        expires_at=token_service.claim_time(claims, "exp"),
    )


CurrentUser = Annotated[Principal, Depends(require_user)]


def require_role(role: str):
    """Dependency factory: demand a specific role.

    Usage: Depends(require_role("admin"))
    """

    def _guard(principal: CurrentUser) -> Principal:
        if not principal.has_role(role):
            logger.warning("Access denied: user=%s missing role=%s", principal.user_id, role)
            raise ForbiddenError("Insufficient permissions")
        return principal

    return _guard
