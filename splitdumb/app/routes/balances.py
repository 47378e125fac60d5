"""
routes/balances.py — Balance route handler.

Layer rules:
  - Call ONE service under the group's read lock, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/groups):
  GET /groups/:id/balances  → 200  net balance per member
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from splitdumb.app.extensions import db, ledger_locks
from splitdumb.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/<int:group_id>/balances", methods=["GET"])
def get_balances(group_id: int):
    """
    GET /groups/:id/balances

    Positive balance: the member is owed money. Negative: the member owes.
    The service asserts that balances sum to zero and raises
    LEDGER_IMBALANCE (500) if they do not.
    """
    with ledger_locks.read(group_id):
        result = balance_service.get_balance_response(
            group_id=group_id,
            session=db.session,
        )
    return jsonify({"data": result, "warnings": []}), 200
