from __future__ import annotations

import pytest

from settings import settings, validate_env_settings


def test_validate_env_allows_dev_missing(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "dev", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "", raising=False)
    monkeypatch.setattr(settings, "NHONGA_WEBHOOK_SECRET", "", raising=False)
    validate_env_settings()


def test_validate_env_staging_fails_on_missing(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "staging", raising=False)
    monkeypatch.setattr(settings, "NHONGA_WEBHOOK_SECRET", "", raising=False)
    monkeypatch.setattr(settings, "WEBHOOK_ENDPOINT_SECRET", "", raising=False)
    monkeypatch.setattr(settings, "PAYOUT_PROVIDER", "flutterwave", raising=False)
    monkeypatch.setattr(settings, "FLUTTERWAVE_SECRET_KEY", "", raising=False)

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()

    message = str(exc.value)
    assert "NHONGA_WEBHOOK_SECRET" in message
    assert "FLUTTERWAVE_SECRET_KEY" in message
    assert "DATABASE_URL" not in message


def test_validate_env_staging_accepts_shared_secret_and_mock(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "staging", raising=False)
    monkeypatch.setattr(settings, "NHONGA_WEBHOOK_SECRET", "", raising=False)
    monkeypatch.setattr(settings, "WEBHOOK_ENDPOINT_SECRET", "shared", raising=False)
    monkeypatch.setattr(settings, "PAYOUT_PROVIDER", "mock", raising=False)
    validate_env_settings()


def test_validate_env_prod_fails_on_missing(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "NHONGA_WEBHOOK_SECRET", "s", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "", raising=False)
    monkeypatch.setattr(settings, "NHONGA_API_KEY", "", raising=False)
    monkeypatch.setattr(settings, "PAYOUT_PROVIDER", "mock", raising=False)

    with pytest.raises(RuntimeError) as exc:
        validate_env_settings()

    message = str(exc.value)
    assert "DATABASE_URL" in message
    assert "NHONGA_API_KEY" in message
    assert "PAYOUT_PROVIDER" in message


def test_validate_env_prod_complete(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    monkeypatch.setattr(settings, "NHONGA_WEBHOOK_SECRET", "s", raising=False)
    monkeypatch.setattr(settings, "DATABASE_URL", "postgresql://example", raising=False)
    monkeypatch.setattr(settings, "NHONGA_API_KEY", "nh_live", raising=False)
    monkeypatch.setattr(settings, "PAYOUT_PROVIDER", "flutterwave", raising=False)
    monkeypatch.setattr(settings, "FLUTTERWAVE_SECRET_KEY", "FLWSECK-live", raising=False)
    monkeypatch.setattr(settings, "FLUTTERWAVE_BASE_URL", "https://api.flutterwave.com/v3", raising=False)
    validate_env_settings()


def test_retry_bounds_are_enforced():
    from pydantic import ValidationError

    from settings import Settings

    with pytest.raises(ValidationError):
        Settings(MAX_RETRY_ATTEMPTS=11)
    with pytest.raises(ValidationError):
        Settings(RETRY_DELAY_MS=50)
