"""
schemas/group_schema.py — Marshmallow schemas for group and member endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/group_service.py:
      - NOT_FOUND (group / member existence requires DB lookup)
      - DUPLICATE_MEMBER (name uniqueness requires DB lookup)
      - MEMBER_IN_USE (ledger references require DB lookup)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate

from splitdumb.app.schemas.expense_schema import validate_non_empty_after_trim


def _group_name_field() -> fields.Str:
    # Mirrors VARCHAR(100) NOT NULL CHECK(LENGTH(TRIM(name)) > 0)
    return fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            validate_non_empty_after_trim,
        ],
    )


def _member_name_field(**kwargs) -> fields.Str:
    return fields.Str(
        validate=[
            validate.Length(
                min=1,
                max=50,
                error="Member name must be between 1 and 50 characters.",
            ),
            validate_non_empty_after_trim,
        ],
        **kwargs,
    )


class CreateGroupSchema(Schema):
    """
    POST /groups

    members is an optional list of initial member names.
    """

    name = _group_name_field()

    members = fields.List(
        _member_name_field(),
        load_default=list,
    )

    simplify_debts = fields.Bool(load_default=False)


class RenameGroupSchema(Schema):
    """PATCH /groups/:id"""

    name = _group_name_field()


class AddMemberSchema(Schema):
    """POST /groups/:id/members"""

    name = _member_name_field(required=True)


class SimplifySchema(Schema):
    """
    POST /groups/:id/simplify

    An empty body toggles the flag; {"simplify_debts": true|false} sets it.
    """

    simplify_debts = fields.Bool(load_default=None, allow_none=True)
