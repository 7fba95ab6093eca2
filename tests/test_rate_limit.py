from __future__ import annotations

from fastapi.testclient import TestClient

from app.automation.repository import AutomationLogStore
from main import create_app
from rate_limit import InMemoryRateLimiter
from settings import settings


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_blocks_after_limit_within_window():
    limiter = InMemoryRateLimiter(clock=Clock())
    assert limiter.allow("ip", limit=2)
    assert limiter.allow("ip", limit=2)
    assert not limiter.allow("ip", limit=2)
    assert limiter.allow("other-ip", limit=2)


def test_limiter_window_slides():
    clock = Clock()
    limiter = InMemoryRateLimiter(clock=clock)
    assert limiter.allow("ip", limit=1, window_seconds=60)
    assert not limiter.allow("ip", limit=1, window_seconds=60)

    clock.now += 60
    assert limiter.allow("ip", limit=1, window_seconds=60)


def test_limiter_forgets_idle_clients():
    clock = Clock()
    limiter = InMemoryRateLimiter(clock=clock)
    for i in range(50):
        assert limiter.allow(f"10.0.0.{i}", limit=5)
    assert limiter.tracked_keys() == 50

    clock.now += 61
    assert limiter.allow("10.0.1.1", limit=5)
    assert limiter.tracked_keys() == 1


def test_rate_limit_middleware_returns_429(engine, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "API_RATE_LIMIT", 2)
    app = create_app(engine=engine, log_store=AutomationLogStore(None), start_scheduler=False)
    client = TestClient(app)

    assert client.get("/health").status_code == 200
    assert client.get("/health").status_code == 200
    r = client.get("/health")
    assert r.status_code == 429
    assert r.json() == {"detail": "RATE_LIMITED"}
    assert r.headers.get("X-Request-Id")
