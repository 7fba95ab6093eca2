from __future__ import annotations

from threading import Lock
from typing import Tuple


_lock = Lock()
_counters: dict[str, dict[Tuple[Tuple[str, str], ...], int]] = {}


def _inc(name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
    key = tuple(sorted((labels or {}).items()))
    with _lock:
        series = _counters.setdefault(name, {})
        series[key] = int(series.get(key, 0)) + int(value)


def increment_http_requests(route: str, status: int) -> None:
    _inc("http_requests_total", {"route": route, "status": str(status)})


def increment_webhook_event(provider: str, signature_valid: bool, outcome: str) -> None:
    _inc(
        "webhook_events_total",
        {
            "provider": provider,
            "signature_valid": str(signature_valid).lower(),
            "outcome": outcome,
        },
    )


def increment_automation(status: str) -> None:
    _inc("automations_total", {"status": status})


def increment_payout_attempt(provider: str, result: str) -> None:
    _inc("payout_attempts_total", {"provider": provider, "result": result})


def increment_retry_outcome(outcome: str) -> None:
    _inc("retry_outcomes_total", {"outcome": outcome})


def get_counter(name: str, labels: dict[str, str] | None = None) -> int:
    key = tuple(sorted((labels or {}).items()))
    with _lock:
        return int(_counters.get(name, {}).get(key, 0))


def reset() -> None:
    with _lock:
        _counters.clear()


def render_prometheus() -> str:
    lines: list[str] = []
    with _lock:
        for name, series in sorted(_counters.items()):
            lines.append(f"# TYPE {name} counter")
            for labels, value in sorted(series.items()):
                if labels:
                    label_str = ",".join(f'{k}="{v}"' for k, v in labels)
                    lines.append(f"{name}{{{label_str}}} {value}")
                else:
                    lines.append(f"{name} {value}")
    return "\n".join(lines) + ("\n" if lines else "")
