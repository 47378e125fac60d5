"""
routes/settlements.py — Settlement route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Special: record_settlement returns (transfer, warnings[]).
  If warnings is non-empty (OVERPAYMENT), the route includes them in the
  response envelope: {"data": {...}, "warnings": [{"code": "OVERPAYMENT", ...}]}.
  The HTTP status is still 201 — overpayment does NOT block the request.

Endpoints (base url_prefix=/api/v1/groups):
  GET  /groups/:id/settlements              → 200  rows in the group's mode
  GET  /groups/:id/settlements?mode=X       → 200  X = stable | simplified
  GET  /groups/:id/settlements/simplified   → 200  always simplified
  POST /groups/:id/settle                   → 201  record a payment (TRANSFER)
  GET  /groups/:id/transfers                → 200  recorded payments, newest first
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from splitdumb.app.extensions import db, ledger_locks
from splitdumb.app.models.ledger_event import LedgerEvent
from splitdumb.app.money import format_cents
from splitdumb.app.schemas.settlement_schema import SettleSchema
from splitdumb.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


# ── Serialization helper ───────────────────────────────────────────────────

def _serialize_transfer(t: LedgerEvent) -> dict:
    """Converts a TRANSFER event to a plain dict for JSON output."""
    return {
        "id": t.id,
        "group_id": t.group_id,
        "from": t.payer.name,
        "to": t.recipient.name,
        "from_member_id": t.payer_member_id,
        "to_member_id": t.recipient_member_id,
        "amount": format_cents(t.amount_cents),  # cents → "10.00", never a JS number
        "description": t.description,
        "created_at": t.created_at.isoformat(),
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@settlements_bp.route("/<int:group_id>/settlements", methods=["GET"])
def get_settlements(group_id: int):
    """
    GET /groups/:id/settlements — Who should pay whom.

    Without ?mode the group's simplify_debts flag picks the algorithm.
    """
    mode = request.args.get("mode")
    with ledger_locks.read(group_id):
        result = settlement_service.get_settlements_response(
            group_id=group_id,
            session=db.session,
            mode=mode,
        )
    return jsonify({"data": result, "warnings": []}), 200


@settlements_bp.route("/<int:group_id>/settlements/simplified", methods=["GET"])
def get_simplified_settlements(group_id: int):
    """GET /groups/:id/settlements/simplified — Minimum-row settlement plan."""
    with ledger_locks.read(group_id):
        result = settlement_service.get_settlements_response(
            group_id=group_id,
            session=db.session,
            mode=settlement_service.MODE_SIMPLIFIED,
        )
    return jsonify({"data": result, "warnings": []}), 200


@settlements_bp.route("/<int:group_id>/settle", methods=["POST"])
def record_settlement(group_id: int):
    """
    POST /groups/:id/settle — Record that `from` paid `to`.

    The amount is recorded as given. Overpaying is allowed and reported
    as a warning; the status remains 201.
    """
    data = SettleSchema().load(request.get_json(force=True) or {})
    with ledger_locks.write(group_id):
        transfer, warnings = settlement_service.record_settlement(
            group_id=group_id,
            data=data,
            session=db.session,
        )
        db.session.commit()
        result = _serialize_transfer(transfer)
    return jsonify({"data": result, "warnings": warnings}), 201


@settlements_bp.route("/<int:group_id>/transfers", methods=["GET"])
def list_transfers(group_id: int):
    """GET /groups/:id/transfers — Recorded settlement payments."""
    with ledger_locks.read(group_id):
        transfers = settlement_service.list_transfers(group_id=group_id, session=db.session)
        result = [_serialize_transfer(t) for t in transfers]
    return jsonify({"data": result, "warnings": []}), 200
