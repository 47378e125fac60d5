"""
services/balance_service.py — Share splitting, pairwise debts and balances.

This file is the SINGLE SOURCE OF TRUTH for how the ledger is replayed.
Shares, pairwise debts and balances are never stored; every read derives
them from the group's ledger events here. Do not reimplement any of these
formulas elsewhere.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - The algorithm functions (split_equally, compute_debt_matrix,
    compute_balances) take plain values and are unit-testable without a DB.
  - get_balance_response() is the only function that touches the session.

Arithmetic:
  All amounts are int cents. Decimal only appears when formatting the
  response (money.format_cents). No float anywhere.

Sign conventions:
  net(A, B) > 0   A owes B that many cents.
  balance(M) > 0  M is owed money; balance(M) < 0  M owes money.
  sum(balance(M) for M in group) == 0 always (zero-sum).
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator, Sequence

from sqlalchemy.orm import Session

from splitdumb.app.errors import AppError, ErrorCode
from splitdumb.app.models.ledger_event import EventKind
from splitdumb.app.money import format_cents
from splitdumb.app.services import ledger_service

logger = logging.getLogger(__name__)


# ── Share splitting ────────────────────────────────────────────────────────

def split_equally(amount_cents: int, participant_ids: Sequence[int]) -> list[tuple[int, int]]:
    """
    Canonical equal split of an expense.

    Every participant gets amount_cents // k. The leftover r = amount_cents % k
    cents go one each to the first r participants in declaration order, so
    the same participant list always yields the same shares.

    Example: 1000 cents over [A, B, C] -> [(A, 334), (B, 333), (C, 333)].

    Returns:
        [(member_id, share_cents), ...] in declaration order.

    Raises:
        AppError(EMPTY_PARTICIPANTS, 400)  -- no participants.
        AppError(ROUNDING_OVERFLOW, 500)   -- shares do not sum to the amount.
    """
    k = len(participant_ids)
    if k == 0:
        raise AppError(
            ErrorCode.EMPTY_PARTICIPANTS,
            "An expense must have at least one participant.",
            400,
            field="participants",
        )

    base, remainder = divmod(amount_cents, k)
    shares = [
        (member_id, base + 1 if index < remainder else base)
        for index, member_id in enumerate(participant_ids)
    ]

    # Must always hold; a failure here is a bug in the rule above.
    total = sum(share for _, share in shares)
    if total != amount_cents:
        logger.error(
            "Equal split of %s cents over %s participants summed to %s",
            amount_cents, k, total,
        )
        raise AppError(
            ErrorCode.ROUNDING_OVERFLOW,
            f"Share computation produced {total} cents for an amount of {amount_cents} cents. "
            f"This is a bug. Please report it.",
            500,
        )

    return shares


# ── Pairwise debt matrix ───────────────────────────────────────────────────

class DebtMatrix:
    """
    Net debt per unordered pair of members.

    Each pair is stored ONCE, under the key (low_id, high_id), as the signed
    amount low_id owes high_id. net(a, b) and net(b, a) are read from the
    same number with opposite signs, so they can never disagree.
    Only pairs touched by the ledger are materialised.
    """

    def __init__(self) -> None:
        self._net: dict[tuple[int, int], int] = {}

    @staticmethod
    def _key(a: int, b: int) -> tuple[int, int]:
        return (a, b) if a < b else (b, a)

    def add(self, debtor_id: int, creditor_id: int, cents: int) -> None:
        """Records that debtor_id owes creditor_id `cents` more (negative pays it down)."""
        if debtor_id == creditor_id or cents == 0:
            return
        key = self._key(debtor_id, creditor_id)
        signed = cents if debtor_id < creditor_id else -cents
        self._net[key] = self._net.get(key, 0) + signed

    def net(self, a: int, b: int) -> int:
        """Signed cents a owes b (negative means b owes a)."""
        if a == b:
            return 0
        value = self._net.get(self._key(a, b), 0)
        return value if a < b else -value

    def pairs(self) -> Iterator[tuple[int, int, int]]:
        """Yields (low_id, high_id, low_owes_high) for every nonzero pair, sorted by ids."""
        for (low, high) in sorted(self._net):
            value = self._net[(low, high)]
            if value != 0:
                yield low, high, value

    def as_dict(self) -> dict[tuple[int, int], int]:
        """{(low_id, high_id): cents low_id owes high_id} for nonzero pairs."""
        return {(low, high): value for low, high, value in self.pairs()}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DebtMatrix):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    def __repr__(self) -> str:  # pragma: no cover
        return f"DebtMatrix({self.as_dict()!r})"


def compute_debt_matrix(events: Iterable) -> DebtMatrix:
    """
    Replays ledger events into a DebtMatrix.

    EXPENSE: every participant other than the payer owes the payer their
             share. A payer who is also a participant owes nobody for
             their own share.
    TRANSFER (from F, to T, amount M): net(F, T) decreases by M. If F did not
             owe T that much, the excess becomes a debt of T towards F.

    Accepts any objects exposing kind, amount_cents, payer_member_id,
    recipient_member_id and participant_ids (LedgerEvent rows in practice).
    Totals do not depend on event order; shares depend only on each
    expense's participant order.
    """
    matrix = DebtMatrix()

    for event in events:
        if event.kind == EventKind.TRANSFER:
            matrix.add(event.payer_member_id, event.recipient_member_id, -event.amount_cents)
            continue

        payer_id = event.payer_member_id
        for member_id, share in split_equally(event.amount_cents, event.participant_ids):
            if member_id != payer_id:
                matrix.add(member_id, payer_id, share)

    return matrix


# ── Balances ───────────────────────────────────────────────────────────────

def compute_balances(
        matrix: DebtMatrix,
        member_ids: Iterable[int] = (),
) -> dict[int, int]:
    """
    Reduces the pairwise matrix to one net balance per member.

    balance(M) = sum(net(other, M)) - sum(net(M, other))

    Every id in member_ids appears in the result, with 0 when untouched.
    The result always sums to exactly 0: each pair adds +v to one side and
    -v to the other.
    """
    balances: dict[int, int] = {member_id: 0 for member_id in member_ids}

    for low, high, owed in matrix.pairs():
        # low owes high `owed` cents.
        balances[low] = balances.get(low, 0) - owed
        balances[high] = balances.get(high, 0) + owed

    return balances


def assert_zero_sum(balances: dict[int, int], group_id: int) -> None:
    """Raises LEDGER_IMBALANCE (500) if the balances do not sum to zero."""
    total = sum(balances.values())
    if total != 0:
        logger.error("Group %s balances sum to %s cents, expected 0", group_id, total)
        raise AppError(
            ErrorCode.LEDGER_IMBALANCE,
            f"Balance integrity check failed: sum was {format_cents(total)} (expected 0.00). "
            f"Group {group_id} has inconsistent financial data.",
            500,
        )


# ── Session-backed read paths ──────────────────────────────────────────────

def get_debt_matrix(group_id: int, session: Session) -> DebtMatrix:
    """Replays the group's full ledger. Callers hold the group's read lock."""
    return compute_debt_matrix(ledger_service.get_events(group_id, session))


def get_balance_response(group_id: int, session: Session) -> dict:
    """
    Builds the payload for GET /groups/:id/balances.

    Raises:
        AppError(NOT_FOUND, 404)         -- group does not exist.
        AppError(LEDGER_IMBALANCE, 500)  -- zero-sum violated (corrupt data / bug).
    """
    ledger_service.get_group_or_404(group_id, session)
    members = ledger_service.get_members(group_id, session)

    matrix = get_debt_matrix(group_id, session)
    balances = compute_balances(matrix, [m.id for m in members])
    assert_zero_sum(balances, group_id)

    return {
        "group_id": group_id,
        "balances": {m.name: format_cents(balances[m.id]) for m in members},
        "members": [
            {
                "member_id": m.id,
                "name": m.name,
                "balance": format_cents(balances[m.id]),
            }
            for m in members
        ],
        "balance_sum": format_cents(sum(balances.values())),
    }
