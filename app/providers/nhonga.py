# app/providers/nhonga.py
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.providers.base import HealthResult
from app.providers.http import HttpClient
from settings import settings

logger = logging.getLogger("umapesa.providers.nhonga")


class NhongaClient:
    """
    Read-only client for the inbound confirmation provider. Confirmations arrive by
    webhook; this is only used for reachability checks and manual status lookups.
    """

    def __init__(self, http: Optional[HttpClient] = None):
        self.http = http or HttpClient(
            settings.NHONGA_BASE_URL.rstrip("/"),
            headers={
                "Content-Type": "application/json",
                "apiKey": settings.NHONGA_API_KEY,
                "User-Agent": "UmaPesa-Relay/1.0.0",
            },
            timeout_s=settings.PAYOUT_HTTP_TIMEOUT_S,
            name="nhonga",
        )

    def get_sms_confirmations(self) -> dict[str, Any]:
        return self._get("/sms/confirmations")

    def get_transaction_status(self, transaction_id: str) -> dict[str, Any]:
        return self._get(f"/transactions/{transaction_id}/status")

    def health_check(self) -> HealthResult:
        result = self.get_sms_confirmations()
        return HealthResult(healthy=bool(result["success"]), error=result.get("error"))

    def _get(self, path: str) -> dict[str, Any]:
        try:
            resp = self.http.get(path)
        except httpx.HTTPError as e:
            logger.error("Nhonga GET %s failed: %s", path, e)
            return {"success": False, "error": str(e) or type(e).__name__}

        if resp.status_code >= 400:
            return {"success": False, "error": f"HTTP {resp.status_code}", "status": resp.status_code}
        return {"success": True, "data": resp.json}
