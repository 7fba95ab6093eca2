from __future__ import annotations

from typing import Dict, Optional

from app.providers.base import PayoutProvider

_PROVIDER_CACHE: Dict[str, PayoutProvider] = {}


def get_payout_provider(name: str) -> Optional[PayoutProvider]:
    key = (name or "").strip().lower()
    if not key:
        return None

    key = key.replace("-", "_").replace(" ", "_")

    if key in _PROVIDER_CACHE:
        return _PROVIDER_CACHE[key]

    provider: Optional[PayoutProvider] = None

    if key in ("flutterwave", "flw"):
        from app.providers.flutterwave import FlutterwaveProvider
        provider = FlutterwaveProvider()

    elif key in ("mock", "sandbox"):
        from app.providers.mock import MockPayoutProvider
        provider = MockPayoutProvider()

    else:
        return None

    _PROVIDER_CACHE[key] = provider
    return provider


def clear_cache() -> None:
    _PROVIDER_CACHE.clear()
