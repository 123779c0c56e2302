"""Account and session endpoints.

Login is two steps: ``/auth/login`` checks the password and mails a
code, ``/auth/verify-2fa`` trades the code for tokens.  The refresh
token travels both in the JSON body and as an HttpOnly cookie scoped to
``/auth``.
"""

from __future__ import annotations

import logging
from typing import Annotated

import jwt
from fastapi import APIRouter, Cookie, Depends, Response
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field

from shabaka.api.dependencies import CurrentUser
from shabaka.container import get_auth_service, get_user_repo
from shabaka.core.config import SETTINGS
from shabaka.core.errors import NotFoundError, UnauthorizedError
from shabaka.models.user import User
from shabaka.repos.user_repo import UserRepo
from shabaka.services import token_service
from shabaka.services.auth_service import AuthService
from shabaka.services.token_service import TokenPair

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

REFRESH_COOKIE = "refresh_token"

_optional_bearer = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

Auth = Annotated[AuthService, Depends(get_auth_service)]


class RegisterIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)
    name: str = ""


class LoginIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str
    rememberMe: bool = False


class EmailIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)


class Verify2faIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    code: str = Field(min_length=6, max_length=6)


class RefreshIn(BaseModel):
    refreshToken: str | None = None


class ResetPasswordIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    code: str = Field(min_length=6, max_length=6)
    newPassword: str


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    roles: list[str]


class TokensOut(BaseModel):
    accessToken: str
    refreshToken: str
    tokenType: str = "bearer"
    expiresIn: int
    user: UserOut | None = None


class LoginOut(BaseModel):
    requires2FA: bool = True
    email: str
    message: str = "Verification code sent"


class MessageOut(BaseModel):
    success: bool = True
    message: str


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name, roles=list(user.roles))


def _set_refresh_cookie(response: Response, pair: TokenPair) -> None:
    response.set_cookie(
        REFRESH_COOKIE,
        pair.refresh_token,
        httponly=True,
        secure=SETTINGS.is_prod,
        samesite="lax",
        path="/auth",
        expires=pair.refresh_expires_at,
    )


def _tokens_out(pair: TokenPair, user: User | None = None) -> TokensOut:
    return TokensOut(
        accessToken=pair.access_token,
        refreshToken=pair.refresh_token,
        expiresIn=pair.expires_in,
        user=_user_out(user) if user is not None else None,
    )


@router.post("/register", response_model=UserOut, status_code=201)
async def register(payload: RegisterIn, auth: Auth) -> UserOut:
    user = await auth.register(payload.email, payload.password, payload.name)
    return _user_out(user)


@router.post("/login", response_model=LoginOut)
async def login(payload: LoginIn, auth: Auth) -> LoginOut:
    user = await auth.start_login(payload.email, payload.password, payload.rememberMe)
    return LoginOut(email=user.email)


@router.post("/verify-2fa", response_model=TokensOut)
async def verify_2fa(payload: Verify2faIn, response: Response, auth: Auth) -> TokensOut:
    user, pair = await auth.verify_2fa(payload.email, payload.code)
    _set_refresh_cookie(response, pair)
    return _tokens_out(pair, user)


@router.post("/resend-2fa", response_model=MessageOut)
async def resend_2fa(payload: EmailIn, auth: Auth) -> MessageOut:
    return MessageOut(message=await auth.resend_2fa(payload.email))


@router.post("/refresh", response_model=TokensOut)
async def refresh(
    response: Response,
    auth: Auth,
    payload: RefreshIn | None = None,
    cookie_token: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> TokensOut:
    token = (payload.refreshToken if payload else None) or cookie_token
    if not token:
        raise UnauthorizedError("Refresh token is required")
    pair = await auth.refresh(token)
    _set_refresh_cookie(response, pair)
    return _tokens_out(pair)


@router.post("/logout", status_code=204)
async def logout(
    auth: Auth,
    raw_token: Annotated[str | None, Depends(_optional_bearer)],
    payload: RefreshIn | None = None,
    cookie_token: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> Response:
    """Always 204: an invalid or expired token is already logged out."""
    jti = exp = None
    if raw_token:
        try:
            claims = token_service.decode_access_token(raw_token)
            jti, exp = claims["jti"], float(claims["exp"])
        except jwt.InvalidTokenError:
            logger.debug("Logout with an invalid access token")

    await auth.logout(
        access_jti=jti,
        access_expires_at=exp,
        refresh_token=(payload.refreshToken if payload else None) or cookie_token,
    )
    response = Response(status_code=204)
    response.delete_cookie(REFRESH_COOKIE, path="/auth")
    return response


@router.post("/revoke-all", status_code=204)
async def revoke_all(principal: CurrentUser, auth: Auth) -> Response:
    await auth.revoke_all(principal.user_id)
    response = Response(status_code=204)
    response.delete_cookie(REFRESH_COOKIE, path="/auth")
    return response


@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(payload: EmailIn, auth: Auth) -> MessageOut:
    return MessageOut(message=await auth.forgot_password(payload.email))


@router.post("/reset-password", response_model=MessageOut)
async def reset_password(payload: ResetPasswordIn, auth: Auth) -> MessageOut:
    await auth.reset_password(payload.email, payload.code, payload.newPassword)
    return MessageOut(message="Password has been reset")


@router.get("/me", response_model=UserOut)
async def me(
    principal: CurrentUser, users: Annotated[UserRepo, Depends(get_user_repo)]
) -> UserOut:
    user = await users.get_by_id(principal.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return _user_out(user)
