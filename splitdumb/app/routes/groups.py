"""
routes/groups.py — Group, member and simplify-flag route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - Writes that touch a group run under its ledger write lock, commit
    included, so readers never see a half-applied change.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups                        → 201  create group
  GET    /groups                        → 200  list groups
  GET    /groups/:id                    → 200  get group + members
  PATCH  /groups/:id                    → 200  rename group
  DELETE /groups/:id                    → 200  delete group, members and ledger
  GET    /groups/:id/members            → 200  list members
  POST   /groups/:id/members            → 201  add member
  DELETE /groups/:id/members/:mid       → 200  remove member (not while in the ledger)
  POST   /groups/:id/simplify           → 200  toggle or set simplify_debts
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from splitdumb.app.extensions import db, ledger_locks
from splitdumb.app.schemas.group_schema import (
    AddMemberSchema,
    CreateGroupSchema,
    RenameGroupSchema,
    SimplifySchema,
)
from splitdumb.app.services import group_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/", methods=["POST"])
def create_group():
    """POST /groups — Create a new group, optionally with initial members."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(data=data, session=db.session)
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
def list_groups():
    """GET /groups — List all groups."""
    result = group_service.list_groups(session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["GET"])
def get_group(group_id: int):
    """GET /groups/:id — Group details with member list and simplify_debts flag."""
    result = group_service.get_group(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["PATCH"])
def rename_group(group_id: int):
    """PATCH /groups/:id — Rename a group."""
    data = RenameGroupSchema().load(request.get_json(force=True) or {})
    with ledger_locks.write(group_id):
        result = group_service.rename_group(
            group_id=group_id,
            name=data["name"],
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>", methods=["DELETE"])
def delete_group(group_id: int):
    """DELETE /groups/:id — Delete a group with its members and ledger."""
    with ledger_locks.write(group_id):
        group_service.delete_group(group_id=group_id, session=db.session)
        db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "group_id": group_id,
        },
        "warnings": [],
    }), 200


@groups_bp.route("/<int:group_id>/members", methods=["GET"])
def list_members(group_id: int):
    """GET /groups/:id/members — Members of the group."""
    result = group_service.list_members(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/<int:group_id>/members", methods=["POST"])
def add_member(group_id: int):
    """POST /groups/:id/members — Add a member by display name."""
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    with ledger_locks.write(group_id):
        result = group_service.add_member(
            group_id=group_id,
            name=data["name"],
            session=db.session,
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<int:group_id>/members/<int:member_id>", methods=["DELETE"])
def remove_member(group_id: int, member_id: int):
    """DELETE /groups/:id/members/:mid — Remove a member no ledger event references."""
    with ledger_locks.write(group_id):
        group_service.remove_member(
            group_id=group_id,
            member_id=member_id,
            session=db.session,
        )
        db.session.commit()
    return jsonify({
        "data": {
            "removed": True,
            "group_id": group_id,
            "member_id": member_id,
        },
        "warnings": [],
    }), 200


@groups_bp.route("/<int:group_id>/simplify", methods=["POST"])
def set_simplify(group_id: int):
    """
    POST /groups/:id/simplify

    Empty body: flip simplify_debts. {"simplify_debts": bool}: set it.
    Only changes which algorithm GET /settlements uses by default.
    """
    data = SimplifySchema().load(request.get_json(silent=True) or {})
    with ledger_locks.write(group_id):
        result = group_service.set_simplify(
            group_id=group_id,
            session=db.session,
            value=data["simplify_debts"],
        )
        db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
