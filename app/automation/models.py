# app/automation/models.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from services.phone import mask_phone

AutomationStatus = Literal["success", "failed", "skipped"]


@dataclass(frozen=True)
class TransferRequest:
    """
    Normalized unit of work. Only built by the webhook ingestor (or the manual
    trigger) after the status and phone checks have passed.
    """

    source_transaction_id: str
    phone_number: str
    amount: Optional[Decimal]
    currency: str
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class AutomationRecord:
    automation_id: str
    status: AutomationStatus
    source_transaction_id: Optional[str] = None
    transfer_id: Optional[str] = None
    phone_number: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    queued_for_retry: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.status != "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "automation_id": self.automation_id,
            "status": self.status,
            "source_transaction_id": self.source_transaction_id,
            "transfer_id": self.transfer_id,
            "phone_number": mask_phone(self.phone_number),
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "reason": self.reason,
            "error": self.error,
            "queued_for_retry": self.queued_for_retry,
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass
class RetryEntry:
    automation_id: str
    transfer_request: TransferRequest
    amount: Decimal
    added_at: datetime
    last_attempt: datetime
    attempt: int = 1
    last_error: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "automation_id": self.automation_id,
            "transaction_id": self.transfer_request.source_transaction_id,
            "phone_number": mask_phone(self.transfer_request.phone_number),
            "amount": float(self.amount),
            "attempt": self.attempt,
            "added_at": self.added_at.isoformat(),
            "last_attempt": self.last_attempt.isoformat(),
            "last_error": self.last_error,
        }


@dataclass(frozen=True)
class AutomationStats:
    processed_count: int
    pending_retry_count: int
    retry_entries: list[dict[str, Any]]

    def as_dict(self) -> dict[str, Any]:
        return {
            "processed_count": self.processed_count,
            "pending_retry_count": self.pending_retry_count,
            "retry_entries": self.retry_entries,
        }
