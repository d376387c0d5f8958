from __future__ import annotations

import pytest

from inventory_auth.core.config import DEV_SECRET_KEY, AppConfig
from tests.factories import auth_config

_ENV_KEYS = (
    "APP_ENV",
    "AUTH_SECRET_KEY",
    "AUTH_DISABLE_2FA",
    "TWO_FACTOR_ALLOW_NO_EMAIL",
    "TWO_FACTOR_DEBUG_RETURN_CODE",
    "SMTP_SECURE",
    "SMTP_PORT",
    "SMTP_CONNECTION_TIMEOUT",
    "CORS_ALLOWED_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_uses_development_defaults() -> None:
    config = AppConfig.from_env()

    assert config.auth.environment == "development"
    assert config.auth.secret_key == DEV_SECRET_KEY
    assert config.auth.session_ttl_seconds == 7 * 24 * 60 * 60
    assert config.auth.otp_ttl_seconds == 600
    assert config.auth.disable_two_factor is False
    assert config.smtp.port == 587
    assert config.security.cors_allowed_origins == ["http://localhost:3000"]


def test_from_env_requires_secret_in_production(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")

    with pytest.raises(ValueError, match="AUTH_SECRET_KEY"):
        AppConfig.from_env()


def test_from_env_reads_flags_and_smtp_settings(monkeypatch) -> None:
    monkeypatch.setenv("AUTH_DISABLE_2FA", "true")
    monkeypatch.setenv("SMTP_SECURE", "1")
    monkeypatch.setenv("SMTP_CONNECTION_TIMEOUT", "5000")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, https://b.example,")

    config = AppConfig.from_env()

    assert config.auth.disable_two_factor is True
    assert config.smtp.secure is True
    assert config.smtp.port == 465
    assert config.smtp.connection_timeout_seconds == 5.0
    assert config.security.cors_allowed_origins == ["https://a.example", "https://b.example"]


def test_debug_code_needs_both_flags_outside_production() -> None:
    assert not auth_config(allow_login_without_email=True).may_return_debug_code
    assert not auth_config(debug_return_code=True).may_return_debug_code
    assert auth_config(
        allow_login_without_email=True, debug_return_code=True
    ).may_return_debug_code
    assert not auth_config(
        environment="production", allow_login_without_email=True, debug_return_code=True
    ).may_return_debug_code
