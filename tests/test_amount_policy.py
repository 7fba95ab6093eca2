from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.automation.amount import (
    ConversionAmountPolicy,
    FixedAmountPolicy,
    PercentageAmountPolicy,
    build_amount_policy,
)
from tests.conftest import percentage_policy


@pytest.mark.parametrize(
    "source,expected",
    [
        ("1000", "500"),  # 100 floored to the minimum
        ("10000", "1000"),
        ("123456", "12345.6"),
        ("2000000", "50000"),  # capped
        (None, "1000"),
        ("0", "1000"),
        ("-50", "1000"),
    ],
)
def test_percentage_policy(source, expected):
    policy = percentage_policy()
    amount = policy(Decimal(source) if source is not None else None)
    assert amount == Decimal(expected)


def test_fixed_policy_ignores_source():
    policy = FixedAmountPolicy(amount=Decimal("1000"))
    assert policy(Decimal("999999")) == Decimal("1000")
    assert policy(None) == Decimal("1000")


def test_conversion_policy_rounds_to_cents():
    policy = ConversionAmountPolicy(exchange_rate=Decimal("18.5"), default=Decimal("1000"))
    assert policy(Decimal("100")) == Decimal("1850.00")
    assert policy(Decimal("33.333")) == Decimal("616.66")
    assert policy(None) == Decimal("1000")


def _settings(**overrides):
    base = dict(
        AMOUNT_POLICY="percentage",
        DEFAULT_TRANSFER_AMOUNT=Decimal("1000"),
        TRANSFER_PERCENTAGE=Decimal("0.1"),
        TRANSFER_MIN_AMOUNT=Decimal("500"),
        TRANSFER_MAX_AMOUNT=Decimal("50000"),
        EXCHANGE_RATE=Decimal("18.5"),
    )
    base.update(overrides)
    return SimpleNamespace(**base)


def test_build_amount_policy_selects_by_name():
    assert isinstance(build_amount_policy(_settings()), PercentageAmountPolicy)
    assert isinstance(build_amount_policy(_settings(AMOUNT_POLICY="fixed")), FixedAmountPolicy)
    assert isinstance(build_amount_policy(_settings(AMOUNT_POLICY="conversion")), ConversionAmountPolicy)


def test_build_amount_policy_rejects_unknown_name():
    with pytest.raises(ValueError):
        build_amount_policy(_settings(AMOUNT_POLICY="lottery"))
