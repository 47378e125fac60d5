"""
routes/expenses.py — Expense route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - Create / replace / delete run under the group's ledger write lock,
    commit included.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups/:id/expenses           → 201  append expense
  GET    /groups/:id/expenses           → 200  list expenses (newest first)
  GET    /groups/:id/expenses/:eid      → 200  get one expense with shares
  PUT    /groups/:id/expenses/:eid      → 200  replace expense
  DELETE /groups/:id/expenses/:eid      → 200  remove expense from the ledger
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from splitdumb.app.extensions import db, ledger_locks
from splitdumb.app.schemas.expense_schema import ExpenseSchema
from splitdumb.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


@expenses_bp.route("/<int:group_id>/expenses", methods=["POST"])
def create_expense(group_id: int):
    """POST /groups/:id/expenses — Append an expense to the group's ledger."""
    data = ExpenseSchema().load(request.get_json(force=True) or {})
    with ledger_locks.write(group_id):
        expense = expense_service.create_expense(
            group_id=group_id,
            data=data,
            session=db.session,
        )
        db.session.commit()
        result = expense_service.serialize_expense(expense)
    return jsonify({"data": result, "warnings": []}), 201


@expenses_bp.route("/<int:group_id>/expenses", methods=["GET"])
def list_expenses(group_id: int):
    """GET /groups/:id/expenses — All expenses of the group, newest first."""
    with ledger_locks.read(group_id):
        expenses = expense_service.list_expenses(group_id=group_id, session=db.session)
        result = [expense_service.serialize_expense(e) for e in expenses]
    return jsonify({"data": result, "warnings": []}), 200


@expenses_bp.route("/<int:group_id>/expenses/<int:expense_id>", methods=["GET"])
def get_expense(group_id: int, expense_id: int):
    """GET /groups/:id/expenses/:eid — One expense with its derived shares."""
    with ledger_locks.read(group_id):
        expense = expense_service.get_expense(
            group_id=group_id,
            expense_id=expense_id,
            session=db.session,
        )
        result = expense_service.serialize_expense(expense)
    return jsonify({"data": result, "warnings": []}), 200


@expenses_bp.route("/<int:group_id>/expenses/<int:expense_id>", methods=["PUT"])
def replace_expense(group_id: int, expense_id: int):
    """
    PUT /groups/:id/expenses/:eid — Replace every field of an expense.

    Optional fields left out of the body (category, notes) are cleared.
    """
    data = ExpenseSchema().load(request.get_json(force=True) or {})
    with ledger_locks.write(group_id):
        expense = expense_service.replace_expense(
            group_id=group_id,
            expense_id=expense_id,
            data=data,
            session=db.session,
        )
        db.session.commit()
        result = expense_service.serialize_expense(expense)
    return jsonify({"data": result, "warnings": []}), 200


@expenses_bp.route("/<int:group_id>/expenses/<int:expense_id>", methods=["DELETE"])
def delete_expense(group_id: int, expense_id: int):
    """DELETE /groups/:id/expenses/:eid — Remove an expense from the ledger."""
    with ledger_locks.write(group_id):
        expense_service.delete_expense(
            group_id=group_id,
            expense_id=expense_id,
            session=db.session,
        )
        db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "group_id": group_id,
            "expense_id": expense_id,
        },
        "warnings": [],
    }), 200
