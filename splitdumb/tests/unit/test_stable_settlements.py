"""
tests/unit/test_stable_settlements.py — Unit tests for settlement_service.stable_settlements.

What this file proves:
  - One row per member pair with a nonzero net debt; zero pairs are omitted
  - `from` is always the member who owes
  - Rows are ordered by (from_member_id, to_member_id)
  - Debts are never merged across pairs
  - Applying every row as a transfer zeroes every pairwise net
"""

from __future__ import annotations

from types import SimpleNamespace

from splitdumb.app.models.ledger_event import EventKind
from splitdumb.app.services.balance_service import DebtMatrix, compute_debt_matrix
from splitdumb.app.services.settlement_service import stable_settlements

A, B, C, D = 1, 2, 3, 4


def _expense(payer: int, amount_cents: int, participants: list[int]) -> SimpleNamespace:
    return SimpleNamespace(
        kind=EventKind.EXPENSE,
        payer_member_id=payer,
        recipient_member_id=None,
        amount_cents=amount_cents,
        participant_ids=participants,
    )


def _as_transfers(rows: list[dict]) -> list[SimpleNamespace]:
    return [
        SimpleNamespace(
            kind=EventKind.TRANSFER,
            payer_member_id=r["from_member_id"],
            recipient_member_id=r["to_member_id"],
            amount_cents=r["amount_cents"],
            participant_ids=[],
        )
        for r in rows
    ]


def test_empty_matrix_no_rows():
    assert stable_settlements(DebtMatrix()) == []


def test_dinner_example():
    """B→A $10, C→A $10."""
    matrix = compute_debt_matrix([_expense(A, 3000, [A, B, C])])

    assert stable_settlements(matrix) == [
        {"from_member_id": B, "to_member_id": A, "amount_cents": 1000},
        {"from_member_id": C, "to_member_id": A, "amount_cents": 1000},
    ]


def test_disjoint_pairs_example():
    matrix = compute_debt_matrix([
        _expense(A, 4000, [A, B]),
        _expense(C, 4000, [C, D]),
    ])

    assert stable_settlements(matrix) == [
        {"from_member_id": B, "to_member_id": A, "amount_cents": 2000},
        {"from_member_id": D, "to_member_id": C, "amount_cents": 2000},
    ]


def test_chain_is_not_merged():
    """A owes B, B owes C: two rows, never A→C."""
    matrix = compute_debt_matrix([
        _expense(B, 1000, [A]),
        _expense(C, 1000, [B]),
    ])

    assert stable_settlements(matrix) == [
        {"from_member_id": A, "to_member_id": B, "amount_cents": 1000},
        {"from_member_id": B, "to_member_id": C, "amount_cents": 1000},
    ]


def test_direction_follows_sign_and_rows_sorted_by_debtor():
    matrix = DebtMatrix()
    matrix.add(D, A, 50)
    matrix.add(A, C, 70)
    matrix.add(B, A, 10)

    rows = stable_settlements(matrix)

    assert [(r["from_member_id"], r["to_member_id"]) for r in rows] == [(A, C), (B, A), (D, A)]
    assert [r["amount_cents"] for r in rows] == [70, 10, 50]


def test_applying_rows_zeroes_every_pair():
    events = [
        _expense(A, 3000, [A, B, C]),
        _expense(B, 1001, [A, B, C, D]),
        _expense(D, 250, [C]),
    ]
    matrix = compute_debt_matrix(events)

    rows = stable_settlements(matrix)
    settled = compute_debt_matrix(events + _as_transfers(rows))

    assert settled.as_dict() == {}
