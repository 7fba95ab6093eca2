# tests/conftest.py

import json
import os
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from app.automation.amount import PercentageAmountPolicy
from app.automation.engine import AutomationEngine
from app.automation.models import TransferRequest
from app.automation.repository import AutomationLogStore
from app.providers.base import HealthResult
from app.providers.mock import MockPayoutProvider
from main import create_app
from services import metrics
from settings import settings

SCRIPT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "scripts"))
if SCRIPT_DIR not in sys.path:
    sys.path.insert(0, SCRIPT_DIR)

from _webhook_signing import canonical_json_bytes, nhonga_signature_header  # noqa: E402

WEBHOOK_SECRET = "dev_secret_nhonga"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int) -> None:
        self.now = self.now + timedelta(milliseconds=ms)


class StaticHealth:
    def __init__(self, healthy: bool, error: Optional[str] = None):
        self.healthy = healthy
        self.error = error

    def health_check(self) -> HealthResult:
        return HealthResult(healthy=self.healthy, error=self.error)


def percentage_policy() -> PercentageAmountPolicy:
    return PercentageAmountPolicy(
        rate=Decimal("0.1"),
        minimum=Decimal("500"),
        maximum=Decimal("50000"),
        default=Decimal("1000"),
    )


def transfer_request(tx_id: str = "NH-1", phone: str = "250788123456", amount: str | None = "1000") -> TransferRequest:
    return TransferRequest(
        source_transaction_id=tx_id,
        phone_number=phone,
        amount=Decimal(amount) if amount is not None else None,
        currency="MZN",
    )


# ---------------------------
# Engine
# ---------------------------

@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def provider() -> MockPayoutProvider:
    return MockPayoutProvider(succeed=True)


@pytest.fixture()
def engine(provider: MockPayoutProvider, clock: FakeClock) -> AutomationEngine:
    ids = iter(f"AUTO-TEST-{i}" for i in range(1, 1000))
    return AutomationEngine(
        provider,
        percentage_policy(),
        currency="RWF",
        max_attempts=3,
        retry_delay_ms=2000,
        clock=clock,
        id_factory=lambda: next(ids),
    )


# ---------------------------
# Client + webhook helpers
# ---------------------------

@pytest.fixture()
def webhook_secret(monkeypatch) -> str:
    monkeypatch.delenv("NHONGA_WEBHOOK_SECRET", raising=False)
    monkeypatch.setattr(settings, "NHONGA_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


@pytest.fixture()
def client(engine: AutomationEngine, webhook_secret: str, monkeypatch) -> TestClient:
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    app = create_app(engine=engine, log_store=AutomationLogStore(None), start_scheduler=False)
    # Needed so tests can assert 500s instead of pytest re-raising server exceptions
    return TestClient(app, raise_server_exceptions=False)


def signed_headers(body: bytes, secret: str = WEBHOOK_SECRET) -> Dict[str, str]:
    headers = nhonga_signature_header(secret, body)
    headers["Content-Type"] = "application/json"
    return headers


def post_webhook(client: TestClient, payload: Any, *, secret: str = WEBHOOK_SECRET, provider: str = "nhonga"):
    body = canonical_json_bytes(payload) if not isinstance(payload, bytes) else payload
    return client.post(f"/webhook/{provider}", content=body, headers=signed_headers(body, secret))


def nhonga_payload(**overrides: Any) -> Dict[str, Any]:
    payload = {
        "transaction_id": "NH-1001",
        "status": "completed",
        "amount": 1000,
        "currency": "MZN",
        "phone_number": "0788123456",
        "sms_content": "Payment confirmed",
        "timestamp": "2026-01-01T00:00:00Z",
    }
    payload.update(overrides)
    return {k: v for k, v in payload.items() if v is not None}


def decode(resp) -> Dict[str, Any]:
    return json.loads(resp.text)
