# app/providers/base.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class PayoutResult:
    success: bool
    transfer_id: Optional[str] = None
    reference: Optional[str] = None
    status: Optional[str] = None
    response: Optional[dict[str, Any]] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class HealthResult:
    healthy: bool
    error: Optional[str] = None

    @property
    def status(self) -> str:
        return "healthy" if self.healthy else "unhealthy"

    def as_dict(self) -> dict[str, Any]:
        return {"status": self.status, "error": self.error}


@runtime_checkable
class PayoutProvider(Protocol):
    """
    Outbound payout collaborator. Implementations never raise for provider-side
    failures; they return PayoutResult(success=False, error=...).
    """

    name: str

    def validate_phone(self, phone: str) -> bool: ...

    def send_money(
        self,
        phone_number: str,
        amount: Decimal,
        reference: str,
        narration: str,
    ) -> PayoutResult: ...

    def verify_account(self, phone_number: str) -> PayoutResult: ...

    def get_transfer_status(self, transfer_id: str) -> PayoutResult: ...

    def health_check(self) -> HealthResult: ...
