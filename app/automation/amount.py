# app/automation/amount.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Protocol

TWO_PLACES = Decimal("0.01")


class AmountPolicy(Protocol):
    """Derives the payout amount (target currency) from the source amount."""

    def __call__(self, source_amount: Optional[Decimal]) -> Decimal: ...


def _positive(value: Optional[Decimal]) -> bool:
    return value is not None and value > 0


@dataclass(frozen=True)
class FixedAmountPolicy:
    amount: Decimal

    def __call__(self, source_amount: Optional[Decimal]) -> Decimal:
        return self.amount


@dataclass(frozen=True)
class PercentageAmountPolicy:
    """
    rate * source amount, floored at `minimum` and capped at `maximum`.
    Absent or non-positive source amounts pay `default`.
    """

    rate: Decimal
    minimum: Decimal
    maximum: Decimal
    default: Decimal

    def __call__(self, source_amount: Optional[Decimal]) -> Decimal:
        if not _positive(source_amount):
            return self.default
        calculated = max(source_amount * self.rate, self.minimum)
        return min(calculated, self.maximum)


@dataclass(frozen=True)
class ConversionAmountPolicy:
    """Converts the source amount at a fixed exchange rate, rounded to cents."""

    exchange_rate: Decimal
    default: Decimal

    def __call__(self, source_amount: Optional[Decimal]) -> Decimal:
        if not _positive(source_amount):
            return self.default
        return (source_amount * self.exchange_rate).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def build_amount_policy(settings) -> AmountPolicy:
    name = (settings.AMOUNT_POLICY or "percentage").strip().lower()
    default = Decimal(settings.DEFAULT_TRANSFER_AMOUNT)

    if name == "fixed":
        return FixedAmountPolicy(amount=default)
    if name == "conversion":
        return ConversionAmountPolicy(exchange_rate=Decimal(settings.EXCHANGE_RATE), default=default)
    if name == "percentage":
        return PercentageAmountPolicy(
            rate=Decimal(settings.TRANSFER_PERCENTAGE),
            minimum=Decimal(settings.TRANSFER_MIN_AMOUNT),
            maximum=Decimal(settings.TRANSFER_MAX_AMOUNT),
            default=default,
        )
    raise ValueError(f"Unknown AMOUNT_POLICY: {settings.AMOUNT_POLICY!r}")
