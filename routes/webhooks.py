# routes/webhooks.py
from __future__ import annotations

import json
import logging
import os
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from app.automation.engine import AutomationEngine
from app.automation.repository import AutomationLogStore
from app.webhooks.ingest import WebhookIngestor, WebhookRejection, unwrap_payload
from deps.automation import get_engine, get_ingestor, get_log_store
from services.metrics import increment_webhook_event
from settings import settings


router = APIRouter(prefix="/webhook", tags=["webhooks"])
logger = logging.getLogger("umapesa.webhooks")


_ENV_SECRET_BY_PROVIDER = {
    "NHONGA": "NHONGA_WEBHOOK_SECRET",
}

_SIGNATURE_HEADERS = ("X-Nhonga-Signature", "X-Signature")


def _get_secret(provider: str) -> str | None:
    key = _ENV_SECRET_BY_PROVIDER.get(provider.upper())
    if not key:
        return None
    value = os.getenv(key)
    if value and value.strip():
        return value
    return getattr(settings, key, None) or settings.WEBHOOK_ENDPOINT_SECRET or None


def _signature_header(req: Request) -> str | None:
    for name in _SIGNATURE_HEADERS:
        value = req.headers.get(name)
        if value and value.strip():
            return value
    return None


def _best_effort_payload(raw: bytes) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    unwrapped = unwrap_payload(parsed)
    return unwrapped if isinstance(unwrapped, dict) else None


def _rejection_body(provider: str, rejection: WebhookRejection) -> dict[str, Any]:
    body = {
        "success": True,
        "provider": provider,
        "skipped": True,
        "reason": rejection.message,
        "code": rejection.reason.value,
    }
    if rejection.transaction_id:
        body["transaction_id"] = rejection.transaction_id
    return body


@router.post("/{provider}")
async def provider_webhook(
    provider: str,
    req: Request,
    engine: AutomationEngine = Depends(get_engine),
    ingestor: WebhookIngestor = Depends(get_ingestor),
    log_store: AutomationLogStore = Depends(get_log_store),
):
    provider = provider.strip().upper()
    if provider not in _ENV_SECRET_BY_PROVIDER:
        raise HTTPException(status_code=404, detail={"error": "UNKNOWN_PROVIDER", "provider": provider})

    raw = await req.body()
    sig_header = _signature_header(req)
    client_ip = req.client.host if req.client else None

    result = ingestor.ingest_raw(raw, signature_header=sig_header, secret=_get_secret(provider))

    if isinstance(result, WebhookRejection) and result.is_authentication_failure:
        increment_webhook_event(provider, signature_valid=False, outcome="rejected")

        # Deployment misconfig, not the caller's fault.
        if result.detail == "WEBHOOK_SECRET_NOT_CONFIGURED":
            logger.error("webhook_secret_missing provider=%s", provider)
            raise HTTPException(status_code=500, detail={"error": result.detail, "provider": provider})

        logger.warning(
            "Invalid webhook signature provider=%s ip=%s signature=%s error=%s",
            provider,
            client_ip,
            "present" if sig_header else "missing",
            result.detail,
        )
        raise HTTPException(status_code=401, detail={"success": False, "error": result.detail})

    payload = _best_effort_payload(raw)

    # Rejections are business outcomes: 200 so the provider does not keep redelivering.
    if isinstance(result, WebhookRejection):
        increment_webhook_event(provider, signature_valid=True, outcome="skipped")
        await run_in_threadpool(log_store.log_rejection, result, source="webhook", payload=payload)
        return _rejection_body(provider, result)

    logger.info(
        "Received %s webhook transaction_id=%s request_id=%s",
        provider.lower(),
        result.source_transaction_id,
        getattr(req.state, "request_id", None),
    )

    record = await run_in_threadpool(engine.process_automation, result)
    increment_webhook_event(provider, signature_valid=True, outcome=record.status)
    await run_in_threadpool(log_store.log_record, record, source="webhook", payload=payload)

    return {
        "success": True,
        "provider": provider,
        "message": "Webhook processed successfully",
        **record.as_dict(),
    }
