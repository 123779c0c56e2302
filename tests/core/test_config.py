from __future__ import annotations

import pytest

from shabaka.core.config import AppEnv, Settings, load_settings

# ---- valid values ----


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("APP_ENV", "LOG_LEVEL", "PAYMENT_MODE", "PORT", "FRONTEND_URL"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.payment_mode == "instant"
    assert settings.port == 8000
    assert settings.frontend_url == "http://localhost:3000"


def test_load_settings_normalizes_case_and_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  TEST ")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("PAYMENT_MODE", " Offline ")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "debug"
    assert settings.payment_mode == "offline"
    assert settings.is_offline_payments is True


def test_frontend_url_trailing_slash_is_stripped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FRONTEND_URL", "https://shabaka.test/")
    assert load_settings().frontend_url == "https://shabaka.test"


def test_empty_optional_urls_become_none(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "")
    monkeypatch.setenv("REDIS_URL", "  ")
    monkeypatch.setenv("STRIPE_SECRET_KEY", "")
    settings = load_settings()
    assert settings.database_url is None
    assert settings.redis_url is None
    assert settings.stripe_secret_key is None


def test_cors_origins_split_on_commas(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://a.test, https://b.test,,")
    assert load_settings().cors_origins == ("https://a.test", "https://b.test")


# ---- invalid values ----


def test_load_settings_rejects_invalid_app_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be"):
        load_settings()


def test_load_settings_rejects_invalid_payment_mode(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_LEVEL", "info")
    monkeypatch.setenv("PAYMENT_MODE", "free")
    with pytest.raises(ValueError, match="PAYMENT_MODE must be instant|offline"):
        load_settings()


def test_load_settings_rejects_bad_port(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_LEVEL", "info")
    monkeypatch.setenv("PAYMENT_MODE", "instant")
    monkeypatch.setenv("PORT", "eighty")
    with pytest.raises(ValueError, match="PORT must be an integer"):
        load_settings()


def test_load_settings_rejects_bad_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.setenv("LOG_LEVEL", "info")
    monkeypatch.setenv("PAYMENT_MODE", "instant")
    monkeypatch.setenv("PORT", "8000")
    monkeypatch.setenv("LOG_JSON", "maybe")
    with pytest.raises(ValueError, match="LOG_JSON must be a boolean"):
        load_settings()


# ---- secrets ----


def test_dev_falls_back_to_dev_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "dev")
    monkeypatch.delenv("JWT_SECRET", raising=False)
    monkeypatch.delenv("JWT_REFRESH_SECRET", raising=False)
    settings = load_settings()
    assert settings.jwt_secret
    assert settings.jwt_refresh_secret
    assert settings.jwt_secret != settings.jwt_refresh_secret


def test_prod_requires_jwt_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "info")
    monkeypatch.setenv("PAYMENT_MODE", "instant")
    monkeypatch.setenv("PORT", "8000")
    monkeypatch.setenv("JWT_SECRET", "access")
    monkeypatch.delenv("JWT_REFRESH_SECRET", raising=False)
    with pytest.raises(ValueError, match="JWT_SECRET and JWT_REFRESH_SECRET are required"):
        load_settings()

    monkeypatch.setenv("JWT_REFRESH_SECRET", "refresh")
    settings = load_settings()
    assert settings.is_prod
    assert settings.jwt_refresh_secret == "refresh"


# ---- Settings properties ----


def _make_settings(app_env: AppEnv = "dev") -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=None,
        redis_url=None,
        cors_origins=(),
        payment_mode="instant",
        frontend_url="http://localhost:3000",
        flouci_app_token="",
        flouci_app_secret="",
        flouci_developer_tracking_id="",
        flouci_webhook_secret=None,
        stripe_secret_key=None,
        stripe_webhook_secret=None,
        jwt_secret="a",
        jwt_refresh_secret="b",
        jwt_issuer="shabaka",
        jwt_audience="shabaka-api",
    )


def test_settings_env_flags() -> None:
    assert _make_settings("dev").is_dev is True
    assert _make_settings("test").is_test is True
    s = _make_settings("prod")
    assert (s.is_dev, s.is_test, s.is_prod) == (False, False, True)
    assert s.is_offline_payments is False


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.app_env = "prod"  # type: ignore[misc]
