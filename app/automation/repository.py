#app/automation/repository.py
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Any, Callable, Optional

import psycopg2
from psycopg2.extras import Json

from app.automation.models import AutomationRecord
from app.webhooks.ingest import WebhookRejection
from services.redaction import redact_dict

logger = logging.getLogger("umapesa.automation.repository")

TIMEFRAMES = {
    "1h": "1 hour",
    "24h": "24 hours",
    "7d": "7 days",
    "30d": "30 days",
}


def _interval(timeframe: str) -> str:
    try:
        return TIMEFRAMES[timeframe]
    except KeyError:
        raise ValueError(f"Unsupported timeframe {timeframe!r}. Allowed: {', '.join(TIMEFRAMES)}") from None


def insert_automation_log(
    conn,
    *,
    source: str,
    automation_id: str | None,
    nhonga_transaction_id: str | None,
    status: str,
    transfer_id: str | None = None,
    phone_number: str | None = None,
    amount: Decimal | None = None,
    currency: str | None = None,
    reason: str | None = None,
    error_message: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    """
    NOTE: caller commits.
    """
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO automation_logs (
              automation_id, source, nhonga_transaction_id, transfer_id,
              phone_number, amount, currency, status, reason, error_message, payload
            )
            VALUES (
              %(automation_id)s, %(source)s, %(nhonga_transaction_id)s, %(transfer_id)s,
              %(phone_number)s, %(amount)s, %(currency)s, %(status)s, %(reason)s, %(error_message)s, %(payload)s
            )
            """,
            {
                "automation_id": automation_id,
                "source": source,
                "nhonga_transaction_id": nhonga_transaction_id,
                "transfer_id": transfer_id,
                "phone_number": phone_number,
                "amount": amount,
                "currency": currency,
                "status": status,
                "reason": reason,
                "error_message": error_message,
                "payload": Json(redact_dict(payload or {})),
            },
        )


def select_automation_stats(conn, *, timeframe: str) -> dict[str, Any]:
    interval = _interval(timeframe)
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT status, COUNT(*), COALESCE(SUM(amount), 0)
            FROM automation_logs
            WHERE created_at >= NOW() - %s::interval
            GROUP BY status
            """,
            (interval,),
        )
        rows = cur.fetchall()

    by_status = {str(status): int(count) for status, count, _ in rows}
    paid = sum((Decimal(total) for status, _, total in rows if status == "success"), Decimal("0"))
    return {
        "timeframe": timeframe,
        "total": sum(by_status.values()),
        "by_status": by_status,
        "success_amount": float(paid),
    }


class AutomationLogStore:
    """
    Append-only audit trail of webhook/manual outcomes. Disabled when no database
    is configured; write failures are logged and never reach the caller.
    """

    def __init__(self, conn_factory: Optional[Callable[[], AbstractContextManager]] = None):
        self._conn_factory = conn_factory

    @property
    def enabled(self) -> bool:
        return self._conn_factory is not None

    def log_record(self, record: AutomationRecord, *, source: str, payload: dict[str, Any] | None) -> None:
        self._write(
            source=source,
            automation_id=record.automation_id,
            nhonga_transaction_id=record.source_transaction_id,
            status=record.status,
            transfer_id=record.transfer_id,
            phone_number=record.phone_number,
            amount=record.amount,
            currency=record.currency,
            reason=record.reason,
            error_message=record.error,
            payload=payload,
        )

    def log_rejection(self, rejection: WebhookRejection, *, source: str, payload: dict[str, Any] | None) -> None:
        self._write(
            source=source,
            automation_id=None,
            nhonga_transaction_id=rejection.transaction_id,
            status="skipped",
            reason=rejection.reason.value,
            error_message=rejection.message,
            payload=payload,
        )

    def stats(self, timeframe: str) -> dict[str, Any]:
        _interval(timeframe)
        if not self.enabled:
            return {"enabled": False, "timeframe": timeframe}
        try:
            with self._conn_factory() as conn:
                return {"enabled": True, **select_automation_stats(conn, timeframe=timeframe)}
        except psycopg2.Error as e:
            logger.exception("automation_stats_query_failed timeframe=%s", timeframe)
            return {"enabled": True, "timeframe": timeframe, "error": type(e).__name__}

    def _write(self, **fields: Any) -> None:
        if not self.enabled:
            return
        try:
            with self._conn_factory() as conn:
                insert_automation_log(conn, **fields)
        except (psycopg2.Error, RuntimeError):
            logger.exception(
                "automation_log_write_failed automation_id=%s transaction_id=%s",
                fields.get("automation_id"),
                fields.get("nhonga_transaction_id"),
            )
