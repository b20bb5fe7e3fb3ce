import logging

import pytest

from smartedu.core.config import INSECURE_ACCESS_SECRET, INSECURE_REFRESH_SECRET, Settings
from smartedu.core.exceptions import ConfigurationError


def test_development_falls_back_to_distinct_insecure_secrets(caplog):
    settings = Settings(ENVIRONMENT="development", JWT_SECRET=None, JWT_REFRESH_SECRET=None)
    with caplog.at_level(logging.WARNING):
        access, refresh = settings.jwt_secrets()
    assert (access, refresh) == (INSECURE_ACCESS_SECRET, INSECURE_REFRESH_SECRET)
    assert access != refresh
    assert "Using fallback JWT secret" in caplog.text


def test_production_requires_both_secrets():
    with pytest.raises(ConfigurationError):
        Settings(ENVIRONMENT="production", JWT_SECRET="only-access-secret-xxxxxxxxxxxxxxxx", JWT_REFRESH_SECRET=None).jwt_secrets()


def test_production_rejects_shared_secret():
    shared = "shared-secret-yyyyyyyyyyyyyyyyyyyyyyyy"
    with pytest.raises(ConfigurationError):
        Settings(ENVIRONMENT="production", JWT_SECRET=shared, JWT_REFRESH_SECRET=shared).jwt_secrets()


def test_production_with_secrets():
    settings = Settings(
        ENVIRONMENT="production",
        JWT_SECRET="prod-access-secret-zzzzzzzzzzzzzzzzzzzz",
        JWT_REFRESH_SECRET="prod-refresh-secret-wwwwwwwwwwwwwwwwwww",
    )
    assert settings.is_production()
    assert settings.jwt_secrets() == (
        "prod-access-secret-zzzzzzzzzzzzzzzzzzzz",
        "prod-refresh-secret-wwwwwwwwwwwwwwwwwww",
    )


def test_secrets_are_not_echoed():
    settings = Settings(JWT_SECRET="do-not-print-me-0000000000000000000")
    assert "do-not-print-me" not in repr(settings)


def test_cors_origins_accepts_comma_string():
    settings = Settings(CORS_ORIGINS="http://a.example, http://b.example")
    assert settings.CORS_ORIGINS == ["http://a.example", "http://b.example"]


def test_log_format_validated():
    with pytest.raises(ValueError):
        Settings(LOG_FORMAT="xml")


def test_bcrypt_rounds_bounds():
    with pytest.raises(ValueError):
        Settings(BCRYPT_ROUNDS=3)
