"""
services/group_service.py — Group and member management.

Groups own their members and their ledger. Member names are unique within a
group (DUPLICATE_MEMBER, 409) because the API addresses members by name.

Member removal policy:
  A member referenced by any ledger event (as payer, participant, or
  transfer party) cannot be removed (MEMBER_IN_USE, 409). Removing them
  would either rewrite history or leave events pointing at nobody; both
  would break the zero-sum property. Delete or replace their expenses first.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from splitdumb.app.errors import AppError, ErrorCode
from splitdumb.app.models.group import Group
from splitdumb.app.models.ledger_event import EventParticipant, LedgerEvent
from splitdumb.app.models.member import Member
from splitdumb.app.services import ledger_service

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _serialize_member(member: Member) -> dict:
    return {
        "id": member.id,
        "name": member.name,
        "created_at": member.created_at.isoformat(),
    }


def _build_group_dict(group: Group, members: list[Member] | None = None) -> dict:
    """Serialises a Group, with its member list when one is given."""
    payload = {
        "id": group.id,
        "name": group.name,
        "simplify_debts": group.simplify_debts,
        "created_at": group.created_at.isoformat(),
    }
    if members is not None:
        payload["members"] = [_serialize_member(m) for m in members]
    return payload


def _get_member_or_404(group_id: int, member_id: int, session: Session) -> Member:
    member = session.get(Member, member_id)
    if member is None or member.group_id != group_id:
        raise AppError(
            ErrorCode.NOT_FOUND,
            f"Member {member_id} does not exist in group {group_id}.",
            404,
        )
    return member


# ── Groups ─────────────────────────────────────────────────────────────────

def create_group(data: dict, session: Session) -> dict:
    """
    Creates a new group, optionally with an initial member list.

    Args:
        data: Validated dict from CreateGroupSchema.
              Keys: name, members (list of names, may be empty),
              simplify_debts (bool).
    """
    names = data.get("members", [])
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise AppError(
            ErrorCode.DUPLICATE_MEMBER,
            f"Member names must be unique; repeated: {', '.join(duplicates)}.",
            409,
            field="members",
        )

    group = Group(name=data["name"], simplify_debts=data.get("simplify_debts", False))
    session.add(group)
    session.flush()  # populate group.id before creating members

    for name in names:
        session.add(Member(group_id=group.id, name=name))
    session.flush()

    logger.info("Created group %s (%r)", group.id, group.name)
    return _build_group_dict(group, ledger_service.get_members(group.id, session))


def list_groups(session: Session) -> list[dict]:
    """
    Returns all groups ordered by creation date.

    Lightweight dicts (no member list); get_group() has the members.
    """
    stmt = select(Group).order_by(Group.created_at.asc(), Group.id.asc())
    groups = session.execute(stmt).scalars().all()
    return [_build_group_dict(g) for g in groups]


def get_group(group_id: int, session: Session) -> dict:
    """Returns group details including the current member list."""
    group = ledger_service.get_group_or_404(group_id, session)
    return _build_group_dict(group, ledger_service.get_members(group_id, session))


def rename_group(group_id: int, name: str, session: Session) -> dict:
    group = ledger_service.lock_group(group_id, session)
    group.name = name
    session.flush()

    logger.info("Renamed group %s to %r", group_id, name)
    return _build_group_dict(group, ledger_service.get_members(group_id, session))


def delete_group(group_id: int, session: Session) -> None:
    """
    Deletes a group together with its members and its whole ledger.

    Rows are removed children first so ON DELETE RESTRICT on the member
    references is never hit, whatever order the database cascades in.
    """
    ledger_service.lock_group(group_id, session)

    event_ids = select(LedgerEvent.id).where(LedgerEvent.group_id == group_id)
    session.execute(
        delete(EventParticipant).where(EventParticipant.event_id.in_(event_ids))
    )
    session.execute(delete(LedgerEvent).where(LedgerEvent.group_id == group_id))
    session.execute(delete(Member).where(Member.group_id == group_id))
    session.execute(delete(Group).where(Group.id == group_id))
    session.flush()
    session.expire_all()

    logger.info("Deleted group %s with its members and ledger", group_id)


def set_simplify(group_id: int, session: Session, value: bool | None = None) -> dict:
    """
    Flips the group's simplify_debts flag, or sets it to `value` when given.

    Only selects which read path GET /settlements uses; the ledger is
    untouched.
    """
    group = ledger_service.lock_group(group_id, session)
    group.simplify_debts = (not group.simplify_debts) if value is None else value
    session.flush()

    logger.info("Group %s simplify_debts set to %s", group_id, group.simplify_debts)
    return _build_group_dict(group)


# ── Members ────────────────────────────────────────────────────────────────

def list_members(group_id: int, session: Session) -> list[dict]:
    """Returns the group's members in the order they joined."""
    ledger_service.get_group_or_404(group_id, session)
    return [_serialize_member(m) for m in ledger_service.get_members(group_id, session)]


def add_member(group_id: int, name: str, session: Session) -> dict:
    """
    Adds a member to a group.

    Raises:
      AppError(NOT_FOUND, 404)         — group does not exist
      AppError(DUPLICATE_MEMBER, 409)  — the name is already taken in the group
    """
    ledger_service.lock_group(group_id, session)

    existing = session.execute(
        select(Member).where(
            Member.group_id == group_id,
            Member.name == name,
        )
    ).scalar_one_or_none()

    if existing is not None:
        raise AppError(
            ErrorCode.DUPLICATE_MEMBER,
            f"'{name}' is already a member of group {group_id}.",
            409,
            field="name",
        )

    member = Member(group_id=group_id, name=name)
    session.add(member)
    session.flush()

    logger.info("Added member %s (%r) to group %s", member.id, name, group_id)
    return _serialize_member(member)


def remove_member(group_id: int, member_id: int, session: Session) -> None:
    """
    Removes a member from a group.

    Raises:
      AppError(NOT_FOUND, 404)      — group or member does not exist
      AppError(MEMBER_IN_USE, 409)  — the ledger still references the member
    """
    ledger_service.lock_group(group_id, session)
    member = _get_member_or_404(group_id, member_id, session)

    if ledger_service.is_member_referenced(member_id, session):
        raise AppError(
            ErrorCode.MEMBER_IN_USE,
            f"'{member.name}' appears in the ledger of group {group_id} and cannot be removed.",
            409,
        )

    session.delete(member)
    session.flush()

    logger.info("Removed member %s (%r) from group %s", member_id, member.name, group_id)
