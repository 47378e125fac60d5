"""
services/expense_service.py — Expense business logic.

Translates validated request bodies (names, Decimal amounts) into ledger
store calls (member ids, int cents), and expense events back into
response dicts with their derived shares.

Rules:
  - payer and every participant must be current members of the group
    (INVALID_MEMBER, 422). Names are resolved to ids here and nowhere else.
  - A participant list must be non-empty (EMPTY_PARTICIPANTS, 400) and may
    not repeat a name (INVALID_MEMBER, 422).
  - The payer does not have to be a participant. A payer who is not listed
    fronted the whole amount and owes no share of it.
  - PUT replaces the expense entirely; DELETE removes it from the ledger.
    Both leave later reads exactly as if the old version never existed.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain ints and dicts; returns ORM objects / dicts or raises AppError.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from splitdumb.app.models.ledger_event import EventKind, LedgerEvent
from splitdumb.app.money import format_cents, to_cents
from splitdumb.app.services import ledger_service
from splitdumb.app.services.balance_service import split_equally


# ── Private helpers ────────────────────────────────────────────────────────

def _resolve_parties(group_id: int, data: dict, session: Session) -> tuple[int, list[int]]:
    """Maps payer / participant names to member ids (INVALID_MEMBER on failure)."""
    members = ledger_service.get_members(group_id, session)
    payer_id = ledger_service.resolve_member_id(group_id, data["payer"], members, "payer")
    participant_ids = ledger_service.resolve_member_ids(
        group_id, data["participants"], members, "participants",
    )
    return payer_id, participant_ids


# ── Serialisation ──────────────────────────────────────────────────────────

def serialize_expense(event: LedgerEvent) -> dict:
    """
    Converts an expense event to a plain dict for JSON output.

    `shares` is derived with the same split rule the balance replay uses,
    so what a client displays always matches what the balances contain.
    """
    names = {p.member_id: p.member.name for p in event.participants}
    shares = split_equally(event.amount_cents, event.participant_ids)

    return {
        "id": event.id,
        "group_id": event.group_id,
        "description": event.description,
        "amount": format_cents(event.amount_cents),
        "payer": event.payer.name,
        "payer_member_id": event.payer_member_id,
        "participants": [names[member_id] for member_id in event.participant_ids],
        "shares": [
            {
                "member_id": member_id,
                "name": names[member_id],
                "amount": format_cents(share),
            }
            for member_id, share in shares
        ],
        "category": event.category,
        "notes": event.notes,
        "created_at": event.created_at.isoformat(),
        "updated_at": event.updated_at.isoformat() if event.updated_at else None,
    }


# ── Public service functions ───────────────────────────────────────────────

def create_expense(group_id: int, data: dict, session: Session) -> LedgerEvent:
    """
    Appends a new expense to the group's ledger.

    Args:
        data: Validated dict from ExpenseSchema.
              Keys: description, amount (Decimal), payer (name),
              participants (names, in declaration order), category, notes.

    Raises:
        AppError(NOT_FOUND, 404)           -- group does not exist.
        AppError(INVALID_AMOUNT, 400)      -- amount not positive / > 2 dp.
        AppError(EMPTY_PARTICIPANTS, 400)  -- participants is empty.
        AppError(INVALID_MEMBER, 422)      -- unknown or repeated name.
    """
    ledger_service.get_group_or_404(group_id, session)

    amount_cents = to_cents(data["amount"])
    payer_id, participant_ids = _resolve_parties(group_id, data, session)

    return ledger_service.append_expense(
        group_id,
        payer_id,
        participant_ids,
        amount_cents,
        data["description"],
        session,
        category=data.get("category"),
        notes=data.get("notes"),
    )


def replace_expense(
        group_id: int,
        expense_id: int,
        data: dict,
        session: Session,
) -> LedgerEvent:
    """
    Replaces every field of an existing expense (PUT semantics).

    Optional fields missing from the body are cleared, not kept.

    Raises:
        AppError(NOT_FOUND, 404) -- group or expense does not exist.
        Plus everything create_expense() raises.
    """
    ledger_service.get_group_or_404(group_id, session)
    ledger_service.get_event_or_404(group_id, expense_id, session, kind=EventKind.EXPENSE)

    amount_cents = to_cents(data["amount"])
    payer_id, participant_ids = _resolve_parties(group_id, data, session)

    return ledger_service.replace_expense(
        group_id,
        expense_id,
        payer_id,
        participant_ids,
        amount_cents,
        data["description"],
        session,
        category=data.get("category"),
        notes=data.get("notes"),
    )


def delete_expense(group_id: int, expense_id: int, session: Session) -> None:
    """
    Removes an expense from the ledger.

    The row and its participants are deleted; balances and settlements
    computed afterwards are identical to those of a ledger that never
    contained it.

    Raises:
        AppError(NOT_FOUND, 404) -- group or expense does not exist.
    """
    ledger_service.get_group_or_404(group_id, session)
    ledger_service.remove_event(group_id, expense_id, session, kind=EventKind.EXPENSE)


def list_expenses(group_id: int, session: Session) -> list[LedgerEvent]:
    """Returns all expenses of a group, newest first."""
    ledger_service.get_group_or_404(group_id, session)

    stmt = (
        select(LedgerEvent)
        .where(
            LedgerEvent.group_id == group_id,
            LedgerEvent.kind == EventKind.EXPENSE,
        )
        .options(selectinload(LedgerEvent.participants))
        .order_by(LedgerEvent.created_at.desc(), LedgerEvent.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


def get_expense(group_id: int, expense_id: int, session: Session) -> LedgerEvent:
    """Returns a single expense of the group (NOT_FOUND for transfers or other groups)."""
    ledger_service.get_group_or_404(group_id, session)
    return ledger_service.get_event_or_404(group_id, expense_id, session, kind=EventKind.EXPENSE)
