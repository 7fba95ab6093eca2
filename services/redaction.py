from __future__ import annotations

import re
from typing import Any

from services.phone import mask_phone


_EMAIL_RE = re.compile(r"\b([A-Za-z0-9._%+-])([A-Za-z0-9._%+-]*)(@[A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")
_PHONE_RE = re.compile(r"\+?\d{8,15}")

_SENSITIVE_KEY_MARKERS = (
    "secret",
    "key",
    "token",
    "pin",
    "password",
    "authorization",
    "signature",
)

_PHONE_KEY_MARKERS = (
    "phone",
    "account_number",
    "msisdn",
)

REDACTED = "***REDACTED***"


def _mask_email(match: re.Match) -> str:
    first = match.group(1)
    domain = match.group(3)
    return f"{first}***{domain}"


def redact_text(value: str) -> str:
    masked = _EMAIL_RE.sub(_mask_email, value)
    masked = _PHONE_RE.sub(lambda m: mask_phone(m.group(0)) or "", masked)

    for marker in ("access_token", "bearer "):
        if marker in masked.lower():
            return REDACTED

    return masked


def _is_sensitive_key(key: str) -> bool:
    key_l = (key or "").lower()
    return any(marker in key_l for marker in _SENSITIVE_KEY_MARKERS)


def _is_phone_key(key: str) -> bool:
    key_l = (key or "").lower()
    return any(marker in key_l for marker in _PHONE_KEY_MARKERS)


def redact_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return redact_dict(value)
    if isinstance(value, list):
        return [redact_value(v) for v in value]
    return value


def redact_dict(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in payload.items():
        if _is_sensitive_key(k):
            out[k] = REDACTED
        elif _is_phone_key(k) and isinstance(v, str):
            out[k] = mask_phone(v)
        else:
            out[k] = redact_value(v)
    return out
