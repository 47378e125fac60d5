"""
services/ledger_service.py — The group ledger store.

All reads of ledger events and ALL ledger mutations go through this module.
No other module adds, edits or deletes LedgerEvent / EventParticipant rows.

Mutations (append_expense, replace_expense, append_transfer, remove_event):
  - validate everything BEFORE the first write, so a rejected request never
    leaves a partial event behind;
  - run inside the group's write lock (taken by the route) and take a row
    lock on the group (lock_group) so other processes serialise too;
  - only flush. Commits are the route's responsibility.

Membership rule:
  Every member an event references (payer, participants, transfer parties)
  must be a current member of the event's group at append time. Violations
  raise INVALID_MEMBER; nothing is ever dropped silently during replay.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from splitdumb.app.errors import AppError, ErrorCode
from splitdumb.app.models.group import Group
from splitdumb.app.models.ledger_event import EventKind, EventParticipant, LedgerEvent
from splitdumb.app.models.member import Member
from splitdumb.app.money import MAX_AMOUNT_CENTS

logger = logging.getLogger(__name__)


# ── Lookups ────────────────────────────────────────────────────────────────

def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def lock_group(group_id: int, session: Session) -> Group:
    """
    Loads the group with SELECT ... FOR UPDATE.

    Serialises writers across processes on databases with row locks
    (PostgreSQL). SQLite ignores FOR UPDATE; the in-process group lock
    covers it there.
    """
    group = session.execute(
        select(Group).where(Group.id == group_id).with_for_update()
    ).scalar_one_or_none()
    if group is None:
        raise AppError(
            ErrorCode.NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def get_members(group_id: int, session: Session) -> list[Member]:
    """Returns the group's members ordered by id."""
    stmt = (
        select(Member)
        .where(Member.group_id == group_id)
        .order_by(Member.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_events(group_id: int, session: Session) -> list[LedgerEvent]:
    """
    Returns every ledger event of the group in append order.

    This is the replay input for balance_service. Participants are eager
    loaded so replay does not issue one query per expense.
    """
    stmt = (
        select(LedgerEvent)
        .where(LedgerEvent.group_id == group_id)
        .options(selectinload(LedgerEvent.participants))
        .order_by(LedgerEvent.created_at.asc(), LedgerEvent.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_event_or_404(
        group_id: int,
        event_id: int,
        session: Session,
        kind: EventKind | None = None,
) -> LedgerEvent:
    """
    Returns one event of the group, optionally of a given kind.

    An event of another group or of the wrong kind is reported as NOT_FOUND:
    e.g. transfers are not addressable through the expense endpoints.
    """
    event = session.get(LedgerEvent, event_id)
    if event is None or event.group_id != group_id or (kind is not None and event.kind != kind):
        label = kind.value if kind is not None else "event"
        raise AppError(
            ErrorCode.NOT_FOUND,
            f"{label.capitalize()} {event_id} does not exist in group {group_id}.",
            404,
        )
    return event


def is_member_referenced(member_id: int, session: Session) -> bool:
    """True if any ledger event names the member as payer, recipient or participant."""
    as_party = session.execute(
        select(LedgerEvent.id)
        .where(
            (LedgerEvent.payer_member_id == member_id)
            | (LedgerEvent.recipient_member_id == member_id)
        )
        .limit(1)
    ).scalar_one_or_none()
    if as_party is not None:
        return True

    as_participant = session.execute(
        select(EventParticipant.id)
        .where(EventParticipant.member_id == member_id)
        .limit(1)
    ).scalar_one_or_none()
    return as_participant is not None


# ── Name resolution (API boundary) ─────────────────────────────────────────

def resolve_member_id(
        group_id: int,
        name: str,
        members: Sequence[Member],
        field: str,
) -> int:
    """
    Maps a display name to a member id.

    Raises INVALID_MEMBER (422) when the name is unknown, or when it matches
    more than one member rather than silently merging them.
    """
    matches = [m.id for m in members if m.name == name]
    if len(matches) != 1:
        reason = "is not a member of" if not matches else "is ambiguous in"
        raise AppError(
            ErrorCode.INVALID_MEMBER,
            f"'{name}' {reason} group {group_id}.",
            422,
            field=field,
        )
    return matches[0]


def resolve_member_ids(
        group_id: int,
        names: Sequence[str],
        members: Sequence[Member],
        field: str,
) -> list[int]:
    """Resolves a participant name list, keeping its order. Repeated names are rejected."""
    seen: set[str] = set()
    ids: list[int] = []
    for name in names:
        if name in seen:
            raise AppError(
                ErrorCode.INVALID_MEMBER,
                f"'{name}' is listed more than once.",
                422,
                field=field,
            )
        seen.add(name)
        ids.append(resolve_member_id(group_id, name, members, field))
    return ids


# ── Validation ─────────────────────────────────────────────────────────────

def _validate_amount(amount_cents: int) -> None:
    if amount_cents <= 0:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            "Amount must be greater than zero.",
            400,
            field="amount",
        )
    if amount_cents > MAX_AMOUNT_CENTS:
        raise AppError(
            ErrorCode.INVALID_AMOUNT,
            f"Amount must not exceed {MAX_AMOUNT_CENTS} cents.",
            400,
            field="amount",
        )


def _validate_expense_parties(
        group_id: int,
        payer_id: int,
        participant_ids: Sequence[int],
        session: Session,
) -> None:
    if not participant_ids:
        raise AppError(
            ErrorCode.EMPTY_PARTICIPANTS,
            "An expense must have at least one participant.",
            400,
            field="participants",
        )
    if len(set(participant_ids)) != len(participant_ids):
        raise AppError(
            ErrorCode.INVALID_MEMBER,
            "A participant is listed more than once.",
            422,
            field="participants",
        )

    member_ids = {m.id for m in get_members(group_id, session)}
    if payer_id not in member_ids:
        raise AppError(
            ErrorCode.INVALID_MEMBER,
            f"Member {payer_id} is not a member of group {group_id}.",
            422,
            field="payer",
        )
    for member_id in participant_ids:
        if member_id not in member_ids:
            raise AppError(
                ErrorCode.INVALID_MEMBER,
                f"Member {member_id} is not a member of group {group_id}.",
                422,
                field="participants",
            )


def _participant_rows(participant_ids: Sequence[int]) -> list[EventParticipant]:
    return [
        EventParticipant(member_id=member_id, position=position)
        for position, member_id in enumerate(participant_ids)
    ]


# ── Mutations ──────────────────────────────────────────────────────────────

def append_expense(
        group_id: int,
        payer_id: int,
        participant_ids: Sequence[int],
        amount_cents: int,
        description: str,
        session: Session,
        category: str | None = None,
        notes: str | None = None,
) -> LedgerEvent:
    """
    Appends an EXPENSE event.

    Raises:
        AppError(NOT_FOUND, 404)           -- group does not exist.
        AppError(INVALID_AMOUNT, 400)      -- amount_cents <= 0 or > MAX_AMOUNT_CENTS.
        AppError(EMPTY_PARTICIPANTS, 400)  -- no participants.
        AppError(INVALID_MEMBER, 422)      -- payer/participant not in the group.
    """
    lock_group(group_id, session)
    _validate_amount(amount_cents)
    _validate_expense_parties(group_id, payer_id, participant_ids, session)

    event = LedgerEvent(
        group_id=group_id,
        kind=EventKind.EXPENSE,
        payer_member_id=payer_id,
        amount_cents=amount_cents,
        description=description,
        category=category,
        notes=notes,
        participants=_participant_rows(participant_ids),
    )
    session.add(event)
    session.flush()

    logger.info(
        "Appended expense %s to group %s: %s cents paid by member %s for %s participant(s)",
        event.id, group_id, amount_cents, payer_id, len(participant_ids),
    )
    return event


def replace_expense(
        group_id: int,
        event_id: int,
        payer_id: int,
        participant_ids: Sequence[int],
        amount_cents: int,
        description: str,
        session: Session,
        category: str | None = None,
        notes: str | None = None,
) -> LedgerEvent:
    """
    Replaces every field of an EXPENSE event.

    For replay this is delete + reinsert: the event keeps its id and
    creation time, and the next replay sees only the new values.
    """
    lock_group(group_id, session)
    event = get_event_or_404(group_id, event_id, session, kind=EventKind.EXPENSE)
    _validate_amount(amount_cents)
    _validate_expense_parties(group_id, payer_id, participant_ids, session)

    event.payer_member_id = payer_id
    event.amount_cents = amount_cents
    event.description = description
    event.category = category
    event.notes = notes
    event.updated_at = datetime.now(timezone.utc)

    # Old rows must be gone before the new ones hit the (event, position)
    # and (event, member) unique constraints.
    event.participants.clear()
    session.flush()
    event.participants.extend(_participant_rows(participant_ids))
    session.flush()

    logger.info(
        "Replaced expense %s in group %s: %s cents paid by member %s for %s participant(s)",
        event.id, group_id, amount_cents, payer_id, len(participant_ids),
    )
    return event


def append_transfer(
        group_id: int,
        from_id: int,
        to_id: int,
        amount_cents: int,
        session: Session,
        description: str | None = None,
) -> LedgerEvent:
    """
    Appends a TRANSFER event: from_id paid to_id amount_cents.

    Raises:
        AppError(NOT_FOUND, 404)        -- group does not exist.
        AppError(INVALID_AMOUNT, 400)   -- amount_cents <= 0 or > MAX_AMOUNT_CENTS.
        AppError(SELF_SETTLEMENT, 422)  -- from_id == to_id.
        AppError(INVALID_MEMBER, 422)   -- a party is not in the group.
    """
    lock_group(group_id, session)
    _validate_amount(amount_cents)

    if from_id == to_id:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "A settlement cannot be made to yourself.",
            422,
            field="to",
        )

    members = {m.id: m for m in get_members(group_id, session)}
    for member_id, field in ((from_id, "from"), (to_id, "to")):
        if member_id not in members:
            raise AppError(
                ErrorCode.INVALID_MEMBER,
                f"Member {member_id} is not a member of group {group_id}.",
                422,
                field=field,
            )

    event = LedgerEvent(
        group_id=group_id,
        kind=EventKind.TRANSFER,
        payer_member_id=from_id,
        recipient_member_id=to_id,
        amount_cents=amount_cents,
        description=description or f"{members[from_id].name} paid {members[to_id].name}",
        category="Settlement",
    )
    session.add(event)
    session.flush()

    logger.info(
        "Recorded transfer %s in group %s: member %s paid member %s %s cents",
        event.id, group_id, from_id, to_id, amount_cents,
    )
    return event


def remove_event(group_id: int, event_id: int, session: Session, kind: EventKind) -> None:
    """
    Deletes an event and its participants.

    Subsequent replays behave as if the event had never been appended.
    """
    lock_group(group_id, session)
    event = get_event_or_404(group_id, event_id, session, kind=kind)
    session.delete(event)
    session.flush()

    logger.info("Removed %s %s from group %s", kind.value, event_id, group_id)
