# app/providers/flutterwave.py
from __future__ import annotations

import logging
import secrets
import time
from decimal import Decimal
from typing import Any, Optional

import httpx

from app.providers.base import HealthResult, PayoutProvider, PayoutResult
from app.providers.http import HttpClient, HttpResponse
from services.phone import is_valid_payout_msisdn, mask_phone, to_payout_msisdn
from settings import settings

logger = logging.getLogger("umapesa.providers.flutterwave")


def generate_reference() -> str:
    return f"UMA-AUTO-{int(time.time() * 1000)}-{secrets.token_hex(3)}".upper()


class FlutterwaveProvider(PayoutProvider):
    name = "flutterwave"

    def __init__(self, http: Optional[HttpClient] = None):
        self.currency = settings.TRANSFER_CURRENCY
        self.account_bank = settings.FLUTTERWAVE_ACCOUNT_BANK
        self.callback_url = f"{settings.CALLBACK_BASE_URL.rstrip('/')}/webhook/flutterwave"
        self.http = http or HttpClient(
            settings.FLUTTERWAVE_BASE_URL.rstrip("/"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {settings.FLUTTERWAVE_SECRET_KEY}",
                "User-Agent": "UmaPesa-Relay/1.0.0",
            },
            timeout_s=settings.PAYOUT_HTTP_TIMEOUT_S,
            name="flutterwave",
        )

    def validate_phone(self, phone: str) -> bool:
        return is_valid_payout_msisdn(phone)

    def send_money(
        self,
        phone_number: str,
        amount: Decimal,
        reference: str,
        narration: str,
    ) -> PayoutResult:
        if not phone_number or amount is None or Decimal(amount) <= 0:
            return PayoutResult(success=False, error="Invalid phone number or amount")

        msisdn = to_payout_msisdn(phone_number)
        if not msisdn:
            return PayoutResult(success=False, error="Invalid Rwandan phone number format")

        reference = reference or generate_reference()
        body = {
            "account_bank": self.account_bank,
            "account_number": msisdn,
            "amount": float(amount),
            "currency": self.currency,
            "narration": narration or settings.TRANSFER_NARRATION,
            "reference": reference,
            "callback_url": self.callback_url,
            "debit_currency": self.currency,
        }

        logger.info(
            "Initiating transfer phone=%s amount=%s currency=%s reference=%s",
            mask_phone(msisdn),
            amount,
            self.currency,
            reference,
        )

        resp, err = self._call("POST", "/transfers", json_body=body)
        if err is not None:
            return err

        data = _data(resp)
        if resp.status_code < 400 and _status(resp) == "success":
            transfer_id = data.get("id")
            logger.info(
                "Transfer accepted transfer_id=%s reference=%s phone=%s",
                transfer_id,
                reference,
                mask_phone(msisdn),
            )
            return PayoutResult(
                success=True,
                transfer_id=str(transfer_id) if transfer_id is not None else None,
                reference=reference,
                status=data.get("status"),
                response=resp.json,
            )

        error = _message(resp) or "Transfer failed"
        logger.error(
            "Transfer failed phone=%s amount=%s http_status=%s error=%s",
            mask_phone(msisdn),
            amount,
            resp.status_code,
            error,
        )
        return PayoutResult(
            success=False,
            reference=reference,
            response={"http_status": resp.status_code, "body": resp.json},
            error=error,
        )

    def verify_account(self, phone_number: str) -> PayoutResult:
        body = {
            "account_number": to_payout_msisdn(phone_number),
            "account_bank": self.account_bank,
        }
        resp, err = self._call("POST", "/misc/verify_payment", json_body=body)
        if err is not None:
            return err
        if _status(resp) == "success":
            return PayoutResult(success=True, response=resp.json)
        return PayoutResult(success=False, response=resp.json, error=_message(resp) or f"HTTP {resp.status_code}")

    def get_transfer_status(self, transfer_id: str) -> PayoutResult:
        resp, err = self._call("GET", f"/transfers/{transfer_id}")
        if err is not None:
            return err
        data = _data(resp)
        if resp.status_code == 200 and _status(resp) == "success":
            return PayoutResult(
                success=True,
                transfer_id=str(transfer_id),
                reference=data.get("reference"),
                status=data.get("status"),
                response=resp.json,
            )
        return PayoutResult(success=False, transfer_id=str(transfer_id), error=_message(resp) or f"HTTP {resp.status_code}")

    def health_check(self) -> HealthResult:
        resp, err = self._call("GET", "/balances")
        if err is not None:
            return HealthResult(healthy=False, error=err.error)
        if resp.status_code == 200 and _status(resp) == "success":
            return HealthResult(healthy=True)
        return HealthResult(healthy=False, error=_message(resp) or f"HTTP {resp.status_code}")

    def _call(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
    ) -> tuple[Optional[HttpResponse], Optional[PayoutResult]]:
        try:
            if method == "POST":
                return self.http.post(path, json_body=json_body), None
            return self.http.get(path), None
        except httpx.TimeoutException:
            logger.error("Flutterwave %s %s timed out", method, path)
            return None, PayoutResult(success=False, error="Gateway timeout")
        except httpx.HTTPError as e:
            logger.error("Flutterwave %s %s failed: %s", method, path, e)
            return None, PayoutResult(success=False, error=f"Provider error: {e}")


def _status(resp: HttpResponse) -> str:
    if isinstance(resp.json, dict):
        return str(resp.json.get("status") or "").strip().lower()
    return ""


def _data(resp: HttpResponse) -> dict[str, Any]:
    if isinstance(resp.json, dict) and isinstance(resp.json.get("data"), dict):
        return resp.json["data"]
    return {}


def _message(resp: HttpResponse) -> Optional[str]:
    if isinstance(resp.json, dict):
        return resp.json.get("message") or resp.json.get("error")
    return None
