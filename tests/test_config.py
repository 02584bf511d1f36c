"""Tests for environment-driven settings and startup validation."""

import pytest
from pydantic import ValidationError

from promptcanvas.core.config import Settings

PRODUCTION_ENV = {
    "APP_ENV": "production",
    "DATABASE_URL": "postgresql+psycopg://app:secret@db:5432/promptcanvas",
    "JWT_SECRET": "prod-jwt-secret-with-enough-length-for-hs256",
    "REPLICATE_API_TOKEN": "r8_prod",
    "BUCKET_NAME": "promptcanvas-images",
    "AWS_ACCESS_KEY_ID": "tid_prod",
    "AWS_SECRET_ACCESS_KEY": "tsec_prod",
}


@pytest.fixture
def production_env(monkeypatch):
    for key, value in PRODUCTION_ENV.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("BCRYPT_ROUNDS", raising=False)
    return monkeypatch


def test_complete_production_config_loads(production_env):
    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.is_production
    assert settings.starting_credits == 10
    assert settings.gallery_limit == 20
    assert settings.session_cookie_name == "auth_token"
    assert settings.session_ttl_seconds == 86400
    assert settings.signed_url_ttl_seconds == 86400
    assert settings.bcrypt_rounds == 12


def test_missing_secrets_fail_fast_with_every_name(production_env):
    production_env.delenv("REPLICATE_API_TOKEN")
    production_env.delenv("BUCKET_NAME")
    production_env.delenv("JWT_SECRET")

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)  # type: ignore[call-arg]

    message = str(exc_info.value)
    assert "- REPLICATE_API_TOKEN:" in message
    assert "- BUCKET_NAME:" in message
    assert "- JWT_SECRET:" in message


def test_validation_skipped_in_test_env(monkeypatch):
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)
    monkeypatch.delenv("BUCKET_NAME", raising=False)

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.replicate_api_token == ""
    assert not settings.is_production


def test_database_url_is_required(monkeypatch):
    monkeypatch.delenv("DATABASE_URL")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)  # type: ignore[call-arg]


def test_cors_origins_parsed_from_comma_list(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, https://app.example.com")

    settings = Settings(_env_file=None)  # type: ignore[call-arg]

    assert settings.cors_origins_list == ["http://localhost:3000", "https://app.example.com"]
