# app/automation/engine.py
from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from app.automation.amount import AmountPolicy
from app.automation.models import AutomationRecord, AutomationStats, RetryEntry, TransferRequest
from app.providers.base import HealthResult, PayoutProvider, PayoutResult
from services.metrics import increment_automation, increment_payout_attempt, increment_retry_outcome
from services.phone import mask_phone

logger = logging.getLogger("umapesa.automation")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_DELAY_MS = 2000

ALREADY_PROCESSED = "Already processed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_automation_id() -> str:
    return f"AUTO-{int(time.time() * 1000)}-{secrets.token_hex(3)}".upper()


@dataclass
class SweepSummary:
    checked: int = 0
    succeeded: int = 0
    failed: int = 0
    exhausted: int = 0
    deferred: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class AutomationEngine:
    """
    Turns a TransferRequest into at most one successful payout per source transaction.

    Owns two process-local collections:
      - processed: source transaction ids already paid out
      - retry queue: failed first attempts keyed by automation id

    Webhook processing and the retry sweep both run under one lock, so the
    collections are only ever mutated by a single caller at a time. Payout calls are
    made while holding it; throughput is bounded by the collaborator's timeout.
    """

    def __init__(
        self,
        provider: PayoutProvider,
        amount_policy: AmountPolicy,
        *,
        currency: str = "RWF",
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        inbound_client: Any = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = generate_automation_id,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.provider = provider
        self.amount_policy = amount_policy
        self.currency = currency
        self.max_attempts = max_attempts
        self.retry_delay = timedelta(milliseconds=retry_delay_ms)
        self.inbound_client = inbound_client
        self._clock = clock
        self._new_id = id_factory

        self._lock = threading.Lock()
        self._processed: set[str] = set()
        self._retry_queue: dict[str, RetryEntry] = {}

    # -----------------------------
    # Webhook path
    # -----------------------------

    def process_automation(self, request: TransferRequest) -> AutomationRecord:
        automation_id = self._new_id()
        created_at = self._clock()

        logger.info(
            "automation_started automation_id=%s transaction_id=%s",
            automation_id,
            request.source_transaction_id,
        )

        with self._lock:
            try:
                record = self._process(automation_id, request, created_at)
            except Exception as e:
                logger.exception("automation_failed automation_id=%s", automation_id)
                record = AutomationRecord(
                    automation_id=automation_id,
                    status="failed",
                    source_transaction_id=request.source_transaction_id,
                    phone_number=request.phone_number,
                    error=str(e) or type(e).__name__,
                    created_at=created_at,
                    completed_at=self._clock(),
                )

        increment_automation(record.status)
        return record

    def _process(self, automation_id: str, request: TransferRequest, created_at: datetime) -> AutomationRecord:
        tx_id = request.source_transaction_id
        phone = request.phone_number

        def finish(status, **kwargs) -> AutomationRecord:
            return AutomationRecord(
                automation_id=automation_id,
                status=status,
                source_transaction_id=tx_id,
                phone_number=phone,
                created_at=created_at,
                completed_at=self._clock(),
                **kwargs,
            )

        if tx_id in self._processed:
            logger.warning(
                "automation_skipped automation_id=%s transaction_id=%s reason=already_processed",
                automation_id,
                tx_id,
            )
            return finish("skipped", reason=ALREADY_PROCESSED)

        if not self.provider.validate_phone(phone):
            logger.error(
                "automation_rejected automation_id=%s transaction_id=%s phone=%s reason=invalid_phone",
                automation_id,
                tx_id,
                mask_phone(phone),
            )
            return finish("failed", error=f"Invalid Rwandan phone number: {mask_phone(phone)}")

        self._verify_account(automation_id, phone)

        amount = self.amount_policy(request.amount)
        result = self.provider.send_money(
            phone,
            amount,
            f"AUTO-{tx_id}",
            f"Automated transfer for Nhonga transaction {tx_id}",
        )
        increment_payout_attempt(self.provider.name, "success" if result.success else "failed")

        if result.success:
            self._processed.add(tx_id)
            logger.info(
                "automation_succeeded automation_id=%s transaction_id=%s transfer_id=%s phone=%s amount=%s currency=%s",
                automation_id,
                tx_id,
                result.transfer_id,
                mask_phone(phone),
                amount,
                self.currency,
            )
            return finish("success", transfer_id=result.transfer_id, amount=amount, currency=self.currency)

        now = self._clock()
        self._retry_queue[automation_id] = RetryEntry(
            automation_id=automation_id,
            transfer_request=request,
            amount=amount,
            added_at=now,
            last_attempt=now,
            attempt=1,
            last_error=result.error,
        )
        logger.warning(
            "automation_queued_for_retry automation_id=%s transaction_id=%s attempt=1 error=%s",
            automation_id,
            tx_id,
            result.error,
        )
        return finish(
            "failed",
            amount=amount,
            currency=self.currency,
            error=f"Payout transfer failed: {result.error}",
            queued_for_retry=True,
        )

    def _verify_account(self, automation_id: str, phone: str) -> None:
        verify = getattr(self.provider, "verify_account", None)
        if verify is None:
            return
        try:
            verification = verify(phone)
            ok, error = verification.success, verification.error
        except Exception as e:
            ok, error = False, str(e)
        if not ok:
            logger.warning(
                "account_verification_failed automation_id=%s phone=%s error=%s proceeding=true",
                automation_id,
                mask_phone(phone),
                error,
            )

    # -----------------------------
    # Retry sweep
    # -----------------------------

    def process_retry_queue(self) -> SweepSummary:
        summary = SweepSummary()
        with self._lock:
            if not self._retry_queue:
                return summary

            logger.info("retry_sweep_started queue_size=%s", len(self._retry_queue))

            # Snapshot: entries are removed while iterating.
            for automation_id, entry in list(self._retry_queue.items()):
                summary.checked += 1

                if entry.attempt >= self.max_attempts:
                    del self._retry_queue[automation_id]
                    summary.exhausted += 1
                    increment_retry_outcome("exhausted")
                    logger.error(
                        "retry_exhausted automation_id=%s transaction_id=%s attempts=%s last_error=%s",
                        automation_id,
                        entry.transfer_request.source_transaction_id,
                        entry.attempt,
                        entry.last_error,
                    )
                    continue

                now = self._clock()
                if now - entry.last_attempt < self.retry_delay:
                    summary.deferred += 1
                    continue

                if self._retry_entry(entry, now):
                    summary.succeeded += 1
                else:
                    summary.failed += 1

        logger.info("retry_sweep_finished %s", summary.as_dict())
        return summary

    def _retry_entry(self, entry: RetryEntry, now: datetime) -> bool:
        automation_id = entry.automation_id
        tx_id = entry.transfer_request.source_transaction_id
        next_attempt = entry.attempt + 1

        logger.info("retry_attempt automation_id=%s attempt=%s", automation_id, next_attempt)

        try:
            result = self.provider.send_money(
                entry.transfer_request.phone_number,
                entry.amount,
                f"RETRY-{automation_id}-{next_attempt}",
                f"Retry transfer for Nhonga transaction {tx_id}",
            )
            ok, error, transfer_id = result.success, result.error, result.transfer_id
        except Exception as e:
            logger.exception("retry_attempt_error automation_id=%s", automation_id)
            ok, error, transfer_id = False, str(e) or type(e).__name__, None

        increment_payout_attempt(self.provider.name, "success" if ok else "failed")

        if ok:
            del self._retry_queue[automation_id]
            self._processed.add(tx_id)
            increment_retry_outcome("succeeded")
            logger.info(
                "retry_succeeded automation_id=%s transaction_id=%s transfer_id=%s attempt=%s",
                automation_id,
                tx_id,
                transfer_id,
                next_attempt,
            )
            return True

        entry.attempt = next_attempt
        entry.last_attempt = self._clock()
        entry.last_error = error
        increment_retry_outcome("failed")
        logger.warning(
            "retry_failed automation_id=%s attempt=%s error=%s",
            automation_id,
            entry.attempt,
            error,
        )
        return False

    # -----------------------------
    # Operator surface
    # -----------------------------

    def get_stats(self) -> AutomationStats:
        with self._lock:
            return AutomationStats(
                processed_count=len(self._processed),
                pending_retry_count=len(self._retry_queue),
                retry_entries=[e.as_dict() for e in self._retry_queue.values()],
            )

    def is_processed(self, source_transaction_id: str) -> bool:
        with self._lock:
            return source_transaction_id in self._processed

    def clear_processed_transactions(self) -> int:
        """
        Empties the processed set only; the retry queue is left untouched.
        A source transaction id delivered again after this call will be paid again.
        """
        with self._lock:
            count = len(self._processed)
            self._processed.clear()
        logger.info("processed_transactions_cleared count=%s", count)
        return count

    def health_check(self) -> dict[str, Any]:
        services = {
            "nhonga": self._check_collaborator(self.inbound_client),
            "payout": self._check_collaborator(self.provider),
        }
        # An unconfigured collaborator reports "unknown", which is not healthy.
        overall = "healthy" if all(s is not None and s.healthy for s in services.values()) else "unhealthy"
        return {
            "overall": overall,
            "provider": self.provider.name,
            **{k: (v.as_dict() if v is not None else {"status": "unknown", "error": None}) for k, v in services.items()},
        }

    def lookup_transfer(self, transfer_id: str) -> PayoutResult:
        try:
            return self.provider.get_transfer_status(transfer_id)
        except Exception as e:
            logger.warning("transfer_lookup_failed transfer_id=%s error=%s", transfer_id, e)
            return PayoutResult(success=False, transfer_id=transfer_id, error=str(e) or type(e).__name__)

    def lookup_source_transaction(self, transaction_id: str) -> Optional[dict[str, Any]]:
        """None when no inbound client is configured."""
        if self.inbound_client is None:
            return None
        return self.inbound_client.get_transaction_status(transaction_id)

    @staticmethod
    def _check_collaborator(target: Any) -> Optional[HealthResult]:
        if target is None:
            return None
        try:
            return target.health_check()
        except Exception as e:
            logger.warning("health_check_failed target=%s error=%s", type(target).__name__, e)
            return HealthResult(healthy=False, error=str(e) or type(e).__name__)
