# settings.py
from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    ENV: Literal["dev", "test", "staging", "prod"] = "dev"
    LOG_LEVEL: str = "INFO"
    PORT: int = Field(default=3001, ge=1, le=65535)

    # -----------------------
    # DB (automation log store; blank => disabled)
    # -----------------------
    DATABASE_URL: str = ""

    # -----------------------
    # NHONGA (inbound payment confirmations)
    # -----------------------
    NHONGA_API_KEY: str = ""
    NHONGA_SECRET_KEY: str = ""
    NHONGA_BASE_URL: str = "https://nhonga.net/api"
    NHONGA_WEBHOOK_SECRET: str = ""

    # Backward-compat (older single shared secret for every provider)
    WEBHOOK_ENDPOINT_SECRET: str = ""

    # -----------------------
    # FLUTTERWAVE (outbound payouts)
    # -----------------------
    FLUTTERWAVE_PUBLIC_KEY: str = ""
    FLUTTERWAVE_SECRET_KEY: str = ""
    FLUTTERWAVE_ENCRYPTION_KEY: str = ""
    FLUTTERWAVE_BASE_URL: str = "https://api.flutterwave.com/v3"
    FLUTTERWAVE_ACCOUNT_BANK: str = "MPS"  # Mobile Money Rwanda
    CALLBACK_BASE_URL: str = "http://localhost:3001"

    PAYOUT_PROVIDER: Literal["flutterwave", "mock"] = "mock"
    PAYOUT_HTTP_TIMEOUT_S: float = Field(default=30.0, gt=0)

    # -----------------------
    # Transfer
    # -----------------------
    DEFAULT_TRANSFER_AMOUNT: Decimal = Field(default=Decimal("1000"), gt=0)
    TRANSFER_CURRENCY: Literal["RWF", "FRW"] = "RWF"
    SOURCE_CURRENCY: str = "MZN"
    TRANSFER_NARRATION: str = "Automated transfer from Nhonga SMS confirmation"

    AMOUNT_POLICY: Literal["percentage", "fixed", "conversion"] = "percentage"
    TRANSFER_PERCENTAGE: Decimal = Field(default=Decimal("0.1"), gt=0)
    TRANSFER_MIN_AMOUNT: Decimal = Field(default=Decimal("500"), ge=0)
    TRANSFER_MAX_AMOUNT: Decimal = Field(default=Decimal("50000"), gt=0)
    EXCHANGE_RATE: Decimal = Field(default=Decimal("18.5"), gt=0)

    # -----------------------
    # Retry / scheduling
    # -----------------------
    MAX_RETRY_ATTEMPTS: int = Field(default=3, ge=1, le=10)
    RETRY_DELAY_MS: int = Field(default=2000, ge=100, le=10000)

    SCHEDULER_ENABLED: bool = True
    RETRY_SWEEP_INTERVAL_S: int = Field(default=300, ge=1)
    PROCESSED_CLEAR_INTERVAL_S: int = Field(default=0, ge=0)  # 0 => operator-only
    HEALTH_CHECK_INTERVAL_S: int = Field(default=900, ge=0)

    # -----------------------
    # Security
    # -----------------------
    RATE_LIMIT_ENABLED: bool = True
    API_RATE_LIMIT: int = Field(default=100, ge=1, le=1000)


def _missing(*names: str) -> list[str]:
    return [n for n in names if not str(getattr(settings, n, "") or "").strip()]


def validate_env_settings() -> None:
    env = (settings.ENV or "dev").strip().lower()
    if env in ("dev", "test"):
        return

    missing: list[str] = []

    if not (settings.NHONGA_WEBHOOK_SECRET or settings.WEBHOOK_ENDPOINT_SECRET).strip():
        missing.append("NHONGA_WEBHOOK_SECRET")

    if settings.PAYOUT_PROVIDER == "flutterwave":
        missing.extend(_missing("FLUTTERWAVE_SECRET_KEY", "FLUTTERWAVE_BASE_URL"))

    if env == "prod":
        missing.extend(_missing("DATABASE_URL", "NHONGA_API_KEY"))
        if settings.PAYOUT_PROVIDER == "mock":
            missing.append("PAYOUT_PROVIDER")

    if missing:
        raise RuntimeError(
            f"Settings validation failed for ENV={env}. "
            "Missing or invalid: " + ", ".join(sorted(set(missing)))
        )


settings = Settings()
