"""Registration, two-step login, token rotation and password reset.

Login never hands out tokens directly: a correct password only issues a
six-digit code (sent through the notification queue), and
``verify_2fa`` trades that code for the token pair.  Password reset
uses the same issue/consume pattern under its own purpose.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError

from shabaka.core.errors import BadRequestError, UnauthorizedError
from shabaka.models.user import User, normalize_email
from shabaka.models.verification_code import CodePurpose, VerificationCode
from shabaka.repos.user_repo import UserRepo
from shabaka.repos.verification_code_repo import VerificationCodeRepo
from shabaka.services import token_service
from shabaka.services.task_queue import NOTIFICATIONS_QUEUE, TaskQueue
from shabaka.services.token_blacklist import TokenBlacklist

logger = logging.getLogger(__name__)

_ph = PasswordHasher()

MIN_PASSWORD_LENGTH = 8

CODE_SENT_MESSAGE = "If the account exists, a verification code has been sent"
RESET_SENT_MESSAGE = "If the account exists, a password reset code has been sent"


def hash_password(plain_password: str) -> str:
    if not plain_password:
        raise ValueError("password must be non-empty")
    return _ph.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not plain_password or not password_hash:
        return False
    try:
        return _ph.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHash):
        return False


def _check_password_strength(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


class AuthService:
    def __init__(
        self,
        *,
        users: UserRepo,
        codes: VerificationCodeRepo,
        blacklist: TokenBlacklist,
        notifications: TaskQueue,
    ) -> None:
        self._users = users
        self._codes = codes
        self._blacklist = blacklist
        self._notifications = notifications

    async def register(self, email: str, password: str, name: str = "") -> User:
        _check_password_strength(password)
        user = User.new(email=email, password_hash=hash_password(password), name=name)
        await self._users.add(user)
        logger.info("Registered user=%s", user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User | None:
        user = await self._users.get_by_email(email)
        if user is None or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None

        try:
            if _ph.check_needs_rehash(user.password_hash):
                await self._users.update_password_hash(user.id, _ph.hash(password))
                logger.info("Rehashed password for user=%s", user.id)
        except InvalidHash:
            return None
        return user

    async def _issue_code(
        self, user: User, purpose: CodePurpose, remember_me: bool = False
    ) -> VerificationCode:
        code = VerificationCode.new(
            user_id=user.id, purpose=purpose, now=datetime.now(UTC), remember_me=remember_me
        )
        await self._codes.replace(code)
        await self._notifications.enqueue(
            NOTIFICATIONS_QUEUE,
            "verification_code",
            {"email": user.email, "code": code.code, "purpose": purpose.value},
        )
        return code

    async def start_login(self, email: str, password: str, remember_me: bool = False) -> User:
        user = await self.authenticate(email, password)
        if user is None:
            logger.warning("Failed login attempt")
            raise UnauthorizedError("Invalid credentials")
        await self._issue_code(user, CodePurpose.TWO_FACTOR, remember_me)
        logger.info("2FA code issued for user=%s", user.id)
        return user

    async def _consume(self, email: str, code: str, purpose: CodePurpose) -> tuple[User, VerificationCode]:
        user = await self._users.get_by_email(email)
        if user is None:
            raise UnauthorizedError("Invalid or expired code")
        stored = await self._codes.consume(user.id, purpose, code.strip(), datetime.now(UTC))
        if stored is None:
            logger.warning("Rejected %s code for user=%s", purpose, user.id)
            raise UnauthorizedError("Invalid or expired code")
        return user, stored

    async def verify_2fa(self, email: str, code: str) -> tuple[User, token_service.TokenPair]:
        user, stored = await self._consume(email, code, CodePurpose.TWO_FACTOR)
        pair = token_service.issue_pair(
            sub=user.id, roles=list(user.roles), remember_me=stored.remember_me
        )
        logger.info("User %s logged in", user.id)
        return user, pair

    async def resend_2fa(self, email: str) -> str:
        user = await self._users.get_by_email(email)
        if user is not None and user.is_active:
            await self._issue_code(user, CodePurpose.TWO_FACTOR)
        return CODE_SENT_MESSAGE

    async def refresh(self, refresh_token: str) -> token_service.TokenPair:
        try:
            claims = token_service.decode_refresh_token(refresh_token)
        except jwt.InvalidTokenError as exc:
            logger.warning("Invalid refresh token: %s", exc)
            raise UnauthorizedError("Invalid refresh token") from None

        if await self._blacklist.is_revoked(claims["jti"], claims["sub"], claims["iat"]):
            raise UnauthorizedError("Refresh token has been revoked")

        user = await self._users.get_by_id(claims["sub"])
        if user is None or not user.is_active:
            raise UnauthorizedError("Invalid refresh token")

        # Rotation: the presented token is single use
        await self._blacklist.revoke(claims["jti"], claims["exp"])
        return token_service.issue_pair(
            sub=user.id, roles=list(user.roles), remember_me=bool(claims.get("rme"))
        )

    async def logout(
        self,
        *,
        access_jti: str | None,
        access_expires_at: float | None,
        refresh_token: str | None,
    ) -> None:
        """Best effort: a failure to revoke is logged, never raised."""
        try:
            if access_jti and access_expires_at:
                await self._blacklist.revoke(access_jti, access_expires_at)
            if refresh_token:
                claims = token_service.decode_refresh_token(refresh_token)
                await self._blacklist.revoke(claims["jti"], claims["exp"])
        except Exception:
            logger.warning("Token revocation failed during logout", exc_info=True)

    async def revoke_all(self, user_id: str) -> None:
        await self._blacklist.revoke_all(user_id, time.time())
        logger.info("All tokens revoked for user=%s", user_id)

    async def forgot_password(self, email: str) -> str:
        user = await self._users.get_by_email(normalize_email(email))
        if user is not None and user.is_active:
            await self._issue_code(user, CodePurpose.PASSWORD_RESET)
            logger.info("Password reset code issued for user=%s", user.id)
        return RESET_SENT_MESSAGE

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        _check_password_strength(new_password)
        user, _ = await self._consume(email, code, CodePurpose.PASSWORD_RESET)
        await self._users.update_password_hash(user.id, hash_password(new_password))
        await self.revoke_all(user.id)
        logger.info("Password reset for user=%s", user.id)
