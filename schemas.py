# schemas.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Timeframe = Literal["1h", "24h", "7d", "30d"]


# -------- MANUAL TRIGGER --------
class ManualTriggerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: str = Field(min_length=1, max_length=32, alias="phoneNumber")
    amount: Decimal = Field(gt=0)
    transaction_id: Optional[str] = Field(default=None, max_length=100, alias="transactionId")


class ManualTriggerResponse(BaseModel):
    success: bool = True
    message: str = "Manual trigger processed"
    result: Dict[str, Any]


# -------- AUTOMATION --------
class RetryEntryOut(BaseModel):
    automation_id: str
    transaction_id: str
    phone_number: Optional[str] = None
    amount: float
    attempt: int
    added_at: str
    last_attempt: str
    last_error: Optional[str] = None


class AutomationStatsOut(BaseModel):
    processed_count: int
    pending_retry_count: int
    retry_entries: List[RetryEntryOut]


class SweepOut(BaseModel):
    checked: int
    succeeded: int
    failed: int
    exhausted: int
    deferred: int


class RetryProcessResponse(BaseModel):
    success: bool = True
    message: str = "Retry queue processed"
    sweep: SweepOut
    stats: AutomationStatsOut


class ClearResponse(BaseModel):
    success: bool = True
    message: str = "Processed transactions cleared"
    cleared: int


class StatsData(BaseModel):
    automation: AutomationStatsOut
    database: Dict[str, Any]
    timeframe: Timeframe


class StatsResponse(BaseModel):
    success: bool = True
    data: StatsData


# -------- LOOKUPS --------
class TransferStatusResponse(BaseModel):
    success: bool
    provider: str
    transfer_id: str
    status: Optional[str] = None
    reference: Optional[str] = None
    error: Optional[str] = None


class SourceTransactionStatusResponse(BaseModel):
    success: bool
    transaction_id: str
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
