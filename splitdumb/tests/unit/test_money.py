"""
tests/unit/test_money.py — Unit tests for the cents conversion helpers.

What this file proves:
  - Positive amounts with up to 2 decimal places convert to exact int cents
  - Finer precision is rejected, never rounded (INVALID_AMOUNT, 400)
  - Zero, negative, NaN, Infinity and amounts above the ceiling are INVALID_AMOUNT
  - Cents format back to two-place strings, including negatives
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from splitdumb.app.errors import AppError, ErrorCode
from splitdumb.app.money import MAX_AMOUNT_CENTS, format_cents, from_cents, to_cents


@pytest.mark.parametrize("amount, expected", [
    (Decimal("10.50"), 1050),
    (Decimal("10.5"), 1050),
    (Decimal("10"), 1000),
    (Decimal("0.01"), 1),
    (Decimal("1E+1"), 1000),
    (Decimal("12345678.99"), 1234567899),
    (Decimal("10000000000.00"), MAX_AMOUNT_CENTS),
])
def test_to_cents_valid(amount, expected):
    cents = to_cents(amount)

    assert cents == expected
    assert isinstance(cents, int)


@pytest.mark.parametrize("amount", [
    Decimal("0"),
    Decimal("-1.00"),
    Decimal("10.005"),
    Decimal("0.001"),
    Decimal("NaN"),
    Decimal("Infinity"),
    Decimal("10000000000.01"),
    Decimal("1E+30"),
    Decimal("99999999999999999999"),
])
def test_to_cents_rejects(amount):
    with pytest.raises(AppError) as exc_info:
        to_cents(amount, field="amount")

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_AMOUNT
    assert err.http_status == 400
    assert err.field == "amount"


def test_from_cents_two_places():
    assert from_cents(1050) == Decimal("10.50")
    assert str(from_cents(5)) == "0.05"


@pytest.mark.parametrize("cents, text", [
    (0, "0.00"),
    (1, "0.01"),
    (1000, "10.00"),
    (-200, "-2.00"),
    (-1, "-0.01"),
    (123456, "1234.56"),
])
def test_format_cents(cents, text):
    assert format_cents(cents) == text
