from __future__ import annotations

import threading
from decimal import Decimal
from typing import Iterable, Optional

from app.providers.base import HealthResult, PayoutProvider, PayoutResult
from services.phone import is_valid_payout_msisdn


class MockPayoutProvider(PayoutProvider):
    """
    Sandbox/test collaborator.

    `outcomes` is consumed one entry per send_money call (True => success,
    False => failure); once exhausted, `succeed` decides. Every call is recorded.
    """

    name = "mock"

    def __init__(
        self,
        *,
        succeed: bool = True,
        outcomes: Iterable[bool] | None = None,
        error: str = "Gateway timeout",
        healthy: bool = True,
        raise_on_send: Optional[Exception] = None,
    ):
        self.succeed = succeed
        self.outcomes = list(outcomes or [])
        self.error = error
        self.healthy = healthy
        self.raise_on_send = raise_on_send
        self.calls: list[dict] = []
        self.transfers: dict[str, str] = {}
        self._lock = threading.Lock()

    def validate_phone(self, phone: str) -> bool:
        return is_valid_payout_msisdn(phone)

    def send_money(
        self,
        phone_number: str,
        amount: Decimal,
        reference: str,
        narration: str,
    ) -> PayoutResult:
        with self._lock:
            self.calls.append(
                {
                    "phone_number": phone_number,
                    "amount": amount,
                    "reference": reference,
                    "narration": narration,
                }
            )
            n = len(self.calls)
            ok = self.outcomes.pop(0) if self.outcomes else self.succeed

        if self.raise_on_send is not None:
            raise self.raise_on_send

        if ok:
            transfer_id = f"mock-{n}"
            with self._lock:
                self.transfers[transfer_id] = reference
            return PayoutResult(
                success=True,
                transfer_id=transfer_id,
                reference=reference,
                status="NEW",
                response={"http_status": 200, "mock": True},
            )
        return PayoutResult(
            success=False,
            reference=reference,
            response={"http_status": 504, "mock": True},
            error=self.error,
        )

    def verify_account(self, phone_number: str) -> PayoutResult:
        return PayoutResult(success=is_valid_payout_msisdn(phone_number))

    def get_transfer_status(self, transfer_id: str) -> PayoutResult:
        reference = self.transfers.get(transfer_id)
        if reference is None:
            return PayoutResult(success=False, transfer_id=transfer_id, error="Transfer not found")
        return PayoutResult(success=True, transfer_id=transfer_id, reference=reference, status="SUCCESSFUL")

    def health_check(self) -> HealthResult:
        if self.healthy:
            return HealthResult(healthy=True)
        return HealthResult(healthy=False, error="Mock provider unhealthy")
