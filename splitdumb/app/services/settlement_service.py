"""
services/settlement_service.py — Settlement generation and recording.

Two read paths produce "who pays whom" rows from the replayed ledger:

  stable      one row per pair with a nonzero net debt, straight from the
              pairwise matrix. Debts never move between pairs, so a row
              stays attached to the same two people over time.
  simplified  greedy min-cash-flow over the member balances. Fewer rows
              (at most n-1 for n members with a nonzero balance), but a
              person may be told to pay someone they never shared with.

The group's simplify_debts flag picks the default path; toggling it never
touches the ledger.

One write path, record_settlement(), appends a TRANSFER event through
ledger_service. The amount is trusted as supplied: overpaying, underpaying
or settling a pair with no debt are all recorded. Overpaying only adds an
OVERPAYMENT warning to the 201 response.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import heapq
import logging
from typing import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from splitdumb.app.errors import AppError, ErrorCode, WarningCode
from splitdumb.app.models.ledger_event import EventKind, LedgerEvent
from splitdumb.app.money import format_cents, to_cents
from splitdumb.app.services import balance_service, ledger_service
from splitdumb.app.services.balance_service import DebtMatrix

logger = logging.getLogger(__name__)

MODE_STABLE = "stable"
MODE_SIMPLIFIED = "simplified"
MODES = (MODE_STABLE, MODE_SIMPLIFIED)


# ── Algorithms (no DB) ─────────────────────────────────────────────────────

def stable_settlements(matrix: DebtMatrix) -> list[dict]:
    """
    One settlement per member pair with a nonzero net debt.

    `from` is whichever member of the pair owes; `amount` is the absolute
    net. Rows are ordered by (from_member_id, to_member_id), so identical
    ledgers always produce identical lists.

    Returns:
        [{"from_member_id": int, "to_member_id": int, "amount_cents": int}, ...]
    """
    rows = []
    for low, high, owed in matrix.pairs():
        debtor, creditor = (low, high) if owed > 0 else (high, low)
        rows.append({
            "from_member_id": debtor,
            "to_member_id": creditor,
            "amount_cents": abs(owed),
        })

    rows.sort(key=lambda r: (r["from_member_id"], r["to_member_id"]))
    return rows


def simplify_debts(balances: Mapping[int, int]) -> list[dict]:
    """
    Greedy minimum cash flow debt simplification.

    Repeatedly matches the largest debtor with the largest creditor, moves
    min(debt, credit) between them and drops whoever reaches zero. Equal
    amounts are broken by the lower member id. Produces at most N-1 rows for
    N members with a nonzero balance.

    This is the usual min-cash-flow heuristic, not a guaranteed global
    minimum number of transactions for every input.

    Args:
        balances: {member_id: balance_cents}. MUST sum to zero.

    Returns:
        [{"from_member_id": int, "to_member_id": int, "amount_cents": int}, ...]
        in the order the matches were made. Empty when everyone is square.
    """
    # heapq is a min-heap: store (-magnitude, member_id) so the largest
    # magnitude, then the lowest id, pops first.
    creditors = [(-amount, member_id) for member_id, amount in balances.items() if amount > 0]
    debtors = [(amount, member_id) for member_id, amount in balances.items() if amount < 0]
    heapq.heapify(creditors)
    heapq.heapify(debtors)

    transactions: list[dict] = []

    while creditors and debtors:
        neg_credit, creditor_id = heapq.heappop(creditors)
        neg_debt, debtor_id = heapq.heappop(debtors)
        credit, debt = -neg_credit, -neg_debt

        transfer = min(credit, debt)
        transactions.append({
            "from_member_id": debtor_id,
            "to_member_id": creditor_id,
            "amount_cents": transfer,
        })

        if credit > transfer:
            heapq.heappush(creditors, (-(credit - transfer), creditor_id))
        if debt > transfer:
            heapq.heappush(debtors, (-(debt - transfer), debtor_id))

    return transactions


# ── Read paths ─────────────────────────────────────────────────────────────

def _serialize_rows(rows: list[dict], names: Mapping[int, str]) -> list[dict]:
    return [
        {
            "from": names[r["from_member_id"]],
            "to": names[r["to_member_id"]],
            "from_member_id": r["from_member_id"],
            "to_member_id": r["to_member_id"],
            "amount": format_cents(r["amount_cents"]),
            # Settled pairs drop out of the next read; rows are never settled.
            "settled": False,
        }
        for r in rows
    ]


def get_settlements_response(
        group_id: int,
        session: Session,
        mode: str | None = None,
) -> dict:
    """
    Builds the payload for GET /groups/:id/settlements.

    Args:
        mode: "stable", "simplified", or None to follow the group's
              simplify_debts flag.

    Raises:
        AppError(NOT_FOUND, 404)         -- group does not exist.
        AppError(INVALID_FIELD, 400)     -- unknown mode.
        AppError(LEDGER_IMBALANCE, 500)  -- zero-sum violated (simplified path).
    """
    group = ledger_service.get_group_or_404(group_id, session)

    if mode is None:
        mode = MODE_SIMPLIFIED if group.simplify_debts else MODE_STABLE
    if mode not in MODES:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"Unknown settlement mode '{mode}'. Use one of: {', '.join(MODES)}.",
            400,
            field="mode",
        )

    members = ledger_service.get_members(group_id, session)
    names = {m.id: m.name for m in members}
    matrix = balance_service.get_debt_matrix(group_id, session)

    if mode == MODE_SIMPLIFIED:
        balances = balance_service.compute_balances(matrix, names)
        balance_service.assert_zero_sum(balances, group_id)
        rows = simplify_debts(balances)
    else:
        rows = stable_settlements(matrix)

    return {
        "group_id": group_id,
        "mode": mode,
        "simplify_debts": group.simplify_debts,
        "settlements": _serialize_rows(rows, names),
    }


def list_transfers(group_id: int, session: Session) -> list[LedgerEvent]:
    """Returns the group's recorded transfers, newest first."""
    ledger_service.get_group_or_404(group_id, session)

    stmt = (
        select(LedgerEvent)
        .where(
            LedgerEvent.group_id == group_id,
            LedgerEvent.kind == EventKind.TRANSFER,
        )
        .order_by(LedgerEvent.created_at.desc(), LedgerEvent.id.desc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Write path ─────────────────────────────────────────────────────────────

def record_settlement(
        group_id: int,
        data: dict,
        session: Session,
) -> tuple[LedgerEvent, list[dict]]:
    """
    Records that `from` paid `to` the given amount.

    Args:
        data: Validated dict from SettleSchema.
              Keys: from_ (str name), to (str name), amount (Decimal).

    Returns:
        (transfer event, warnings). warnings holds an OVERPAYMENT entry when
        the amount exceeds what `from` owed `to` before this payment.

    Raises:
        AppError(NOT_FOUND, 404)        -- group does not exist.
        AppError(INVALID_AMOUNT, 400)   -- amount not positive / > 2 dp.
        AppError(INVALID_MEMBER, 422)   -- unknown party name.
        AppError(SELF_SETTLEMENT, 422)  -- from == to.
    """
    ledger_service.get_group_or_404(group_id, session)
    members = ledger_service.get_members(group_id, session)

    amount_cents = to_cents(data["amount"])
    from_id = ledger_service.resolve_member_id(group_id, data["from_"], members, "from")
    to_id = ledger_service.resolve_member_id(group_id, data["to"], members, "to")

    warnings: list[dict] = []
    if from_id != to_id:
        owed = balance_service.get_debt_matrix(group_id, session).net(from_id, to_id)
        if amount_cents > owed:
            outstanding = format_cents(max(owed, 0))
            logger.warning(
                "Overpayment in group %s: member %s paid member %s %s cents against %s owed",
                group_id, from_id, to_id, amount_cents, max(owed, 0),
            )
            warnings.append({
                "code": WarningCode.OVERPAYMENT,
                "message": (
                    f"Settlement of {format_cents(amount_cents)} exceeds the "
                    f"{outstanding} {data['from_']} owes {data['to']}. "
                    f"Recording anyway; the difference is now owed back."
                ),
            })

    event = ledger_service.append_transfer(group_id, from_id, to_id, amount_cents, session)
    return event, warnings
