from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
PaymentMode = Literal["instant", "offline"]

# Development-only fallbacks; prod refuses to start without real secrets.
_DEV_JWT_SECRET = "dev-access-secret-change-me"
_DEV_JWT_REFRESH_SECRET = "dev-refresh-secret-change-me"


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    cors_origins: tuple[str, ...]

    # Payments
    payment_mode: PaymentMode
    frontend_url: str
    flouci_app_token: str
    flouci_app_secret: str
    flouci_developer_tracking_id: str
    flouci_webhook_secret: str | None
    stripe_secret_key: str | None
    stripe_webhook_secret: str | None

    # Tokens
    jwt_secret: str
    jwt_refresh_secret: str
    jwt_issuer: str
    jwt_audience: str

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def is_offline_payments(self) -> bool:
        return self.payment_mode == "offline"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")
    payment_mode_raw = _getenv("PAYMENT_MODE", "instant").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    if payment_mode_raw not in ("instant", "offline"):
        raise ValueError(
            f"PAYMENT_MODE must be instant|offline (got {payment_mode_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    jwt_secret = _getenv("JWT_SECRET", "")
    jwt_refresh_secret = _getenv("JWT_REFRESH_SECRET", "")
    if app_env_raw == "prod" and not (jwt_secret and jwt_refresh_secret):
        raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET are required in prod")

    cors_raw = _getenv("CORS_ORIGINS", "http://localhost:3000")
    cors_origins = tuple(o.strip() for o in cors_raw.split(",") if o.strip())

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        cors_origins=cors_origins,
        payment_mode=payment_mode_raw,
        frontend_url=_getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        flouci_app_token=_getenv("FLOUCI_APP_TOKEN", ""),
        flouci_app_secret=_getenv("FLOUCI_APP_SECRET", ""),
        flouci_developer_tracking_id=_getenv("FLOUCI_DEVELOPER_TRACKING_ID", ""),
        flouci_webhook_secret=_getenv("FLOUCI_WEBHOOK_SECRET", "") or None,
        stripe_secret_key=_getenv("STRIPE_SECRET_KEY", "") or None,
        stripe_webhook_secret=_getenv("STRIPE_WEBHOOK_SECRET", "") or None,
        jwt_secret=jwt_secret or _DEV_JWT_SECRET,
        jwt_refresh_secret=jwt_refresh_secret or _DEV_JWT_REFRESH_SECRET,
        jwt_issuer=_getenv("JWT_ISSUER", "shabaka"),
        jwt_audience=_getenv("JWT_AUDIENCE", "shabaka-api"),
    )


SETTINGS = load_settings()
