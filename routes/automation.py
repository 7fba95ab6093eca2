# routes/automation.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from app.automation.engine import AutomationEngine
from app.automation.repository import AutomationLogStore
from app.webhooks.ingest import WebhookIngestor, WebhookRejection
from deps.automation import get_engine, get_ingestor, get_log_store
from schemas import (
    ClearResponse,
    ManualTriggerRequest,
    ManualTriggerResponse,
    RetryProcessResponse,
    SourceTransactionStatusResponse,
    StatsResponse,
    Timeframe,
    TransferStatusResponse,
)
from settings import settings

logger = logging.getLogger("umapesa.automation")
router = APIRouter(tags=["automation"])


@router.post("/trigger/manual", response_model=ManualTriggerResponse)
def manual_trigger(
    body: ManualTriggerRequest,
    engine: AutomationEngine = Depends(get_engine),
    ingestor: WebhookIngestor = Depends(get_ingestor),
    log_store: AutomationLogStore = Depends(get_log_store),
):
    # Same shape as a Nhonga delivery, minus the signature.
    payload = {
        "transaction_id": body.transaction_id or f"MANUAL-{int(time.time() * 1000)}",
        "status": "completed",
        "amount": str(body.amount),
        "currency": settings.SOURCE_CURRENCY,
        "phone_number": body.phone_number,
        "sms_content": f"Payment confirmed for {body.phone_number}",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    logger.info("manual_trigger transaction_id=%s", payload["transaction_id"])

    result = ingestor.ingest(payload)
    if isinstance(result, WebhookRejection):
        log_store.log_rejection(result, source="manual", payload=payload)
        return ManualTriggerResponse(
            result={
                "status": "skipped",
                "reason": result.message,
                "code": result.reason.value,
                "transaction_id": result.transaction_id,
            }
        )

    record = engine.process_automation(result)
    log_store.log_record(record, source="manual", payload=payload)
    return ManualTriggerResponse(result=record.as_dict())


@router.get("/stats", response_model=StatsResponse)
def stats(
    timeframe: Timeframe = Query(default="24h"),
    engine: AutomationEngine = Depends(get_engine),
    log_store: AutomationLogStore = Depends(get_log_store),
):
    return {
        "success": True,
        "data": {
            "automation": engine.get_stats().as_dict(),
            "database": log_store.stats(timeframe),
            "timeframe": timeframe,
        },
    }


@router.post("/retry/process", response_model=RetryProcessResponse)
def process_retry_queue(engine: AutomationEngine = Depends(get_engine)):
    summary = engine.process_retry_queue()
    return {
        "success": True,
        "message": "Retry queue processed",
        "sweep": summary.as_dict(),
        "stats": engine.get_stats().as_dict(),
    }


@router.post("/maintenance/clear", response_model=ClearResponse)
def maintenance_clear(engine: AutomationEngine = Depends(get_engine)):
    cleared = engine.clear_processed_transactions()
    return {"success": True, "message": "Processed transactions cleared", "cleared": cleared}


@router.get("/transfers/{transfer_id}", response_model=TransferStatusResponse)
def transfer_status(transfer_id: str, engine: AutomationEngine = Depends(get_engine)):
    result = engine.lookup_transfer(transfer_id)
    return {
        "success": result.success,
        "provider": engine.provider.name,
        "transfer_id": transfer_id,
        "status": result.status,
        "reference": result.reference,
        "error": result.error,
    }


@router.get("/nhonga/transactions/{transaction_id}", response_model=SourceTransactionStatusResponse)
def source_transaction_status(transaction_id: str, engine: AutomationEngine = Depends(get_engine)):
    result = engine.lookup_source_transaction(transaction_id)
    if result is None:
        raise HTTPException(status_code=503, detail={"error": "NHONGA_NOT_CONFIGURED"})
    return {
        "success": result["success"],
        "transaction_id": transaction_id,
        "data": result.get("data"),
        "error": result.get("error"),
    }
