"""
tests/unit/test_compute_balances.py — Unit tests for compute_balances / assert_zero_sum.

What this file proves:
  - balance(M) > 0 means M is owed, < 0 means M owes
  - Every listed member appears, with 0 when untouched by the ledger
  - Balances always sum to exactly zero
  - assert_zero_sum raises LEDGER_IMBALANCE (500) on a non-zero sum
"""

from __future__ import annotations

import random
from types import SimpleNamespace

import pytest

from splitdumb.app.errors import AppError, ErrorCode
from splitdumb.app.models.ledger_event import EventKind
from splitdumb.app.services.balance_service import (
    DebtMatrix,
    assert_zero_sum,
    compute_balances,
    compute_debt_matrix,
)

A, B, C, D = 1, 2, 3, 4


def _expense(payer: int, amount_cents: int, participants: list[int]) -> SimpleNamespace:
    return SimpleNamespace(
        kind=EventKind.EXPENSE,
        payer_member_id=payer,
        recipient_member_id=None,
        amount_cents=amount_cents,
        participant_ids=participants,
    )


def _transfer(sender: int, receiver: int, amount_cents: int) -> SimpleNamespace:
    return SimpleNamespace(
        kind=EventKind.TRANSFER,
        payer_member_id=sender,
        recipient_member_id=receiver,
        amount_cents=amount_cents,
        participant_ids=[],
    )


def test_dinner_example_balances():
    """$30 dinner, payer A, participants A, B, C → A=+20, B=-10, C=-10."""
    matrix = compute_debt_matrix([_expense(A, 3000, [A, B, C])])

    assert compute_balances(matrix, [A, B, C]) == {A: 2000, B: -1000, C: -1000}


def test_disjoint_pairs_example_balances():
    matrix = compute_debt_matrix([
        _expense(A, 4000, [A, B]),
        _expense(C, 4000, [C, D]),
    ])

    assert compute_balances(matrix, [A, B, C, D]) == {A: 2000, B: -2000, C: 2000, D: -2000}


def test_untouched_members_have_zero_balance():
    matrix = compute_debt_matrix([_expense(A, 1000, [A, B])])

    balances = compute_balances(matrix, [A, B, C, D])

    assert balances[C] == 0
    assert balances[D] == 0


def test_overpayment_moves_balances_past_zero():
    """B owes A $3 and pays $5 → A=-2, B=+2."""
    matrix = compute_debt_matrix([
        _expense(A, 600, [A, B]),
        _transfer(B, A, 500),
    ])

    assert compute_balances(matrix, [A, B]) == {A: -200, B: 200}


def test_empty_ledger_all_zero():
    assert compute_balances(DebtMatrix(), [A, B]) == {A: 0, B: 0}


@pytest.mark.parametrize("seed", range(25))
def test_balances_always_sum_to_zero(seed):
    rng = random.Random(seed)
    members = list(range(1, rng.randint(2, 8) + 1))
    events = []
    for _ in range(rng.randint(1, 30)):
        if rng.random() < 0.75:
            participants = rng.sample(members, rng.randint(1, len(members)))
            events.append(_expense(rng.choice(members), rng.randint(1, 100_000), participants))
        else:
            sender, receiver = rng.sample(members, 2)
            events.append(_transfer(sender, receiver, rng.randint(1, 50_000)))

    balances = compute_balances(compute_debt_matrix(events), members)

    assert sum(balances.values()) == 0
    assert_zero_sum(balances, group_id=1)


def test_assert_zero_sum_raises_ledger_imbalance():
    with pytest.raises(AppError) as exc_info:
        assert_zero_sum({A: 100, B: -99}, group_id=7)

    err = exc_info.value
    assert err.code == ErrorCode.LEDGER_IMBALANCE
    assert err.http_status == 500
    assert "0.01" in err.message
