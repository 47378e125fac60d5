"""
schemas/settlement_schema.py — Marshmallow schema for POST /groups/:id/settle.

Validation responsibility:
  - This file: field presence and types, INVALID_AMOUNT (400).
  - services/settlement_service.py:
      - INVALID_MEMBER (422)   — party names need the group's member list
      - SELF_SETTLEMENT (422)  — checked after names resolve to ids
      - OVERPAYMENT warning    — needs the replayed ledger

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from splitdumb.app.schemas.expense_schema import amount_field


class SettleSchema(Schema):
    """
    Body: {"from": "Bob", "to": "Alice", "amount": "10.00"}

    `from` is a Python keyword, so the loaded key is `from_`.
    """

    from_ = fields.Str(
        required=True,
        data_key="from",
        validate=validate.Length(min=1, max=50),
    )

    to = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=50),
    )

    amount = amount_field()
