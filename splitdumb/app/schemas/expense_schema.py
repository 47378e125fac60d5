"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types and lengths, description non-empty after trim
      - INVALID_AMOUNT (400): non-numeric, NaN/Infinity, <= 0, > MAX_AMOUNT, > 2 dp
      - EMPTY_PARTICIPANTS (400): empty participant list
  - services/expense_service.py (needs the group's member list):
      - INVALID_MEMBER (422): unknown payer/participant, repeated participant

The same schema serves POST (create) and PUT (replace): a replacement must
carry every required field.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from splitdumb.app.errors import ErrorCode
from splitdumb.app.money import MAX_AMOUNT


# ── Shared monetary amount validator ──────────────────────────────────────
#
# Used by ExpenseSchema and SettleSchema. Input with more than 2 decimal
# places is REJECTED, never rounded or truncated. The error handler maps the
# INVALID_AMOUNT message back to its code.
# ──────────────────────────────────────────────────────────────────────────

def validate_monetary_amount(value: Decimal) -> None:
    """
    Raises ValidationError(INVALID_AMOUNT) unless value is finite, strictly
    positive, at most MAX_AMOUNT and has at most 2 decimal places.
    """
    if not value.is_finite() or value <= Decimal("0") or value > MAX_AMOUNT:
        raise ValidationError(ErrorCode.INVALID_AMOUNT)

    # Decimal("10.123").as_tuple().exponent == -3  → 3 dp → reject
    # Decimal("10.12").as_tuple().exponent  == -2  → accept
    # Decimal("1E+1").as_tuple().exponent   ==  1  → accept
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT)


def amount_field(**kwargs) -> fields.Decimal:
    """Decimal field that reports every malformed amount as INVALID_AMOUNT."""
    return fields.Decimal(
        required=True,
        validate=validate_monetary_amount,
        error_messages={
            "invalid": ErrorCode.INVALID_AMOUNT,
            "special": ErrorCode.INVALID_AMOUNT,
        },
        **kwargs,
    )


def validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class ExpenseSchema(Schema):
    """
    POST /groups/:id/expenses and PUT /groups/:id/expenses/:eid

    payer and participants are member display names. The order of
    participants is significant: leftover cents of an uneven split go to
    the first participants listed.
    """

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )

    amount = amount_field()

    payer = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=50),
    )

    participants = fields.List(
        fields.Str(validate=validate.Length(min=1, max=50)),
        required=True,
        validate=validate.Length(min=1, error=ErrorCode.EMPTY_PARTICIPANTS),
    )

    # Free-form label, e.g. "Food" or "Travel".
    category = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=50, error="Category must be at most 50 characters."),
    )

    notes = fields.Str(
        load_default=None,
        allow_none=True,
    )
