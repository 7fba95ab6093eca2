# app/webhooks/ingest.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

from app.automation.models import TransferRequest
from app.webhooks.signature import verify_signature
from services.phone import extract_phone, mask_phone
from services.redaction import redact_dict

logger = logging.getLogger("umapesa.webhooks")

SUCCESS_STATUSES = ("completed", "success")


class RejectionReason(str, Enum):
    BAD_SIGNATURE = "BAD_SIGNATURE"
    INVALID_JSON = "INVALID_JSON"
    MISSING_FIELDS = "MISSING_FIELDS"
    NOT_SUCCESSFUL_STATUS = "NOT_SUCCESSFUL_STATUS"
    INVALID_PHONE = "INVALID_PHONE"
    UNSUPPORTED_CURRENCY = "UNSUPPORTED_CURRENCY"


_MESSAGES = {
    RejectionReason.BAD_SIGNATURE: "Invalid signature",
    RejectionReason.INVALID_JSON: "Invalid JSON payload",
    RejectionReason.MISSING_FIELDS: "Missing required webhook fields",
    RejectionReason.NOT_SUCCESSFUL_STATUS: "Transaction not successful",
    RejectionReason.INVALID_PHONE: "Could not extract valid phone number",
    RejectionReason.UNSUPPORTED_CURRENCY: "Unsupported currency",
}


@dataclass(frozen=True)
class WebhookRejection:
    reason: RejectionReason
    transaction_id: Optional[str] = None
    # signature error code (MISSING_SIGNATURE, INVALID_SIGNATURE, ...) or status value
    detail: Optional[str] = None

    @property
    def message(self) -> str:
        return _MESSAGES[self.reason]

    @property
    def is_authentication_failure(self) -> bool:
        return self.reason is RejectionReason.BAD_SIGNATURE


IngestResult = Union[TransferRequest, WebhookRejection]


def unwrap_payload(payload: Any) -> Any:
    """
    Some deliveries wrap the event like {"data": {...}}.
    """
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload


def parse_amount(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class WebhookIngestor:
    """
    Turns a raw Nhonga notification into a TransferRequest, or says why not.
    Nothing here raises for bad input and nothing here pays anybody.
    """

    def __init__(self, *, source_currency: str, target_currency: str):
        self.source_currency = source_currency.upper()
        self.allowed_currencies = {self.source_currency, target_currency.upper()}

    def ingest_raw(self, raw: bytes, *, signature_header: str | None, secret: str | None) -> IngestResult:
        ok, sig_err = verify_signature(raw=raw, signature_header=signature_header, secret=secret)
        if not ok:
            return WebhookRejection(RejectionReason.BAD_SIGNATURE, detail=sig_err)

        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            logger.warning("webhook_rejected reason=%s", RejectionReason.INVALID_JSON.value)
            return WebhookRejection(RejectionReason.INVALID_JSON)

        return self.ingest(parsed)

    def ingest(self, payload: Any) -> IngestResult:
        payload = unwrap_payload(payload)
        if not isinstance(payload, dict):
            logger.warning("webhook_rejected reason=%s", RejectionReason.INVALID_JSON.value)
            return WebhookRejection(RejectionReason.INVALID_JSON)

        transaction_id = _text(payload.get("transaction_id"))
        raw_status = payload.get("status")
        status = _text(raw_status)
        phone_field = _text(payload.get("phone_number"))
        sms_content = _text(payload.get("sms_content"))

        if not transaction_id or not status or not (phone_field or sms_content):
            logger.error(
                "webhook_rejected reason=%s payload=%s",
                RejectionReason.MISSING_FIELDS.value,
                redact_dict(payload),
            )
            return WebhookRejection(RejectionReason.MISSING_FIELDS, transaction_id=transaction_id or None)

        # Exact match: "COMPLETED" or " success " are not confirmations.
        if raw_status not in SUCCESS_STATUSES:
            logger.info(
                "webhook_skipped transaction_id=%s status=%s reason=%s",
                transaction_id,
                status,
                RejectionReason.NOT_SUCCESSFUL_STATUS.value,
            )
            return WebhookRejection(
                RejectionReason.NOT_SUCCESSFUL_STATUS,
                transaction_id=transaction_id,
                detail=status,
            )

        phone = extract_phone(phone_field, sms_content)
        if not phone:
            logger.error(
                "webhook_rejected transaction_id=%s reason=%s phone=%s",
                transaction_id,
                RejectionReason.INVALID_PHONE.value,
                mask_phone(phone_field),
            )
            return WebhookRejection(RejectionReason.INVALID_PHONE, transaction_id=transaction_id)

        currency = _text(payload.get("currency")).upper() or self.source_currency
        if currency not in self.allowed_currencies:
            logger.error(
                "webhook_rejected transaction_id=%s reason=%s currency=%s",
                transaction_id,
                RejectionReason.UNSUPPORTED_CURRENCY.value,
                currency,
            )
            return WebhookRejection(
                RejectionReason.UNSUPPORTED_CURRENCY,
                transaction_id=transaction_id,
                detail=currency,
            )

        amount = parse_amount(payload.get("amount"))

        logger.info(
            "webhook_accepted transaction_id=%s phone=%s amount=%s currency=%s",
            transaction_id,
            mask_phone(phone),
            amount,
            currency,
        )
        return TransferRequest(
            source_transaction_id=transaction_id,
            phone_number=phone,
            amount=amount,
            currency=currency,
            timestamp=_text(payload.get("timestamp")) or None,
        )
