"""
money.py — Conversion between API decimal amounts and integer minor units.

The ledger stores and computes every amount as an int number of cents.
Decimal values exist only at the API boundary: incoming amounts are
converted with to_cents() right after schema validation, outgoing amounts
with from_cents() right before serialisation.
"""

from __future__ import annotations

from decimal import Decimal

from splitdumb.app.errors import AppError, ErrorCode

CENT = Decimal("0.01")
MINOR_UNITS_PER_MAJOR = 100

# Largest single amount: 10 billion in major units. Keeps one event inside
# BIGINT and whole-ledger sums far from the int64 limit.
MAX_AMOUNT_CENTS = 10**12
MAX_AMOUNT = Decimal(MAX_AMOUNT_CENTS) / MINOR_UNITS_PER_MAJOR


def to_cents(amount: Decimal, field: str = "amount") -> int:
    """
    Converts a positive Decimal with at most 2 decimal places to cents.

    Values with finer precision are rejected, never rounded.
    """
    if not amount.is_finite():
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Amount must be a finite number.",
            400,
            field=field,
        )
    if amount <= 0:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Amount must be greater than zero.",
            400,
            field=field,
        )
    if amount > MAX_AMOUNT:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            f"Amount must not exceed {MAX_AMOUNT:.2f}.",
            400,
            field=field,
        )

    cents = amount * MINOR_UNITS_PER_MAJOR
    if cents != cents.to_integral_value():
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Amount must have at most 2 decimal places.",
            400,
            field=field,
        )
    return int(cents)


def from_cents(cents: int) -> Decimal:
    """Converts cents back to a two-place Decimal, e.g. 1050 -> Decimal("10.50")."""
    return (Decimal(cents) / MINOR_UNITS_PER_MAJOR).quantize(CENT)


def format_cents(cents: int) -> str:
    """Display form used in JSON responses: 1050 -> "10.50", -200 -> "-2.00"."""
    return str(from_cents(cents))
