"""
tests/unit/test_ledger_service_units.py — Unit tests for ledger_service guard clauses.

Every mutation must reject bad input BEFORE anything is written, so these
tests also assert that session.add() was never called.

Sessions are MagicMock objects and member rows are SimpleNamespace objects.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from splitdumb.app.errors import AppError, ErrorCode
from splitdumb.app.models.ledger_event import EventKind
from splitdumb.app.money import MAX_AMOUNT_CENTS
from splitdumb.app.services import ledger_service

MEMBERS = [
    SimpleNamespace(id=1, name="Alice"),
    SimpleNamespace(id=2, name="Bob"),
    SimpleNamespace(id=3, name="Carol"),
]


# ── Lookups ────────────────────────────────────────────────────────────────

def test_get_group_or_404_raises_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        ledger_service.get_group_or_404(99999, session)

    err = exc_info.value
    assert err.code == ErrorCode.NOT_FOUND
    assert err.http_status == 404


def test_lock_group_raises_not_found():
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = None

    with pytest.raises(AppError) as exc_info:
        ledger_service.lock_group(5, session)

    assert exc_info.value.code == ErrorCode.NOT_FOUND


def test_get_event_or_404_wrong_group():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=10, group_id=2, kind=EventKind.EXPENSE)

    with pytest.raises(AppError) as exc_info:
        ledger_service.get_event_or_404(1, 10, session, kind=EventKind.EXPENSE)

    assert exc_info.value.code == ErrorCode.NOT_FOUND


def test_get_event_or_404_transfer_is_not_an_expense():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=10, group_id=1, kind=EventKind.TRANSFER)

    with pytest.raises(AppError) as exc_info:
        ledger_service.get_event_or_404(1, 10, session, kind=EventKind.EXPENSE)

    err = exc_info.value
    assert err.code == ErrorCode.NOT_FOUND
    assert "Expense 10" in err.message


def test_get_event_or_404_returns_matching_event():
    event = SimpleNamespace(id=10, group_id=1, kind=EventKind.EXPENSE)
    session = MagicMock()
    session.get.return_value = event

    assert ledger_service.get_event_or_404(1, 10, session, kind=EventKind.EXPENSE) is event


# ── Name resolution ────────────────────────────────────────────────────────

def test_resolve_member_id_known_name():
    assert ledger_service.resolve_member_id(1, "Bob", MEMBERS, "payer") == 2


def test_resolve_member_id_unknown_name():
    with pytest.raises(AppError) as exc_info:
        ledger_service.resolve_member_id(1, "Mallory", MEMBERS, "payer")

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_MEMBER
    assert err.http_status == 422
    assert err.field == "payer"
    assert "Mallory" in err.message


def test_resolve_member_ids_keeps_declaration_order():
    ids = ledger_service.resolve_member_ids(1, ["Carol", "Alice"], MEMBERS, "participants")

    assert ids == [3, 1]


def test_resolve_member_ids_rejects_repeats():
    with pytest.raises(AppError) as exc_info:
        ledger_service.resolve_member_ids(1, ["Bob", "Alice", "Bob"], MEMBERS, "participants")

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_MEMBER
    assert err.field == "participants"


# ── append_expense ─────────────────────────────────────────────────────────

@patch.object(ledger_service, "get_members", return_value=MEMBERS)
@patch.object(ledger_service, "lock_group")
def test_append_expense_rejects_unknown_payer(_lock, _members):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_expense(1, 99, [1, 2], 1000, "Dinner", session)

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_MEMBER
    assert err.field == "payer"
    session.add.assert_not_called()


@patch.object(ledger_service, "get_members", return_value=MEMBERS)
@patch.object(ledger_service, "lock_group")
def test_append_expense_rejects_unknown_participant(_lock, _members):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_expense(1, 1, [1, 42], 1000, "Dinner", session)

    assert exc_info.value.field == "participants"
    session.add.assert_not_called()


@patch.object(ledger_service, "lock_group")
def test_append_expense_rejects_empty_participants(_lock):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_expense(1, 1, [], 1000, "Dinner", session)

    err = exc_info.value
    assert err.code == ErrorCode.EMPTY_PARTICIPANTS
    assert err.http_status == 400
    session.add.assert_not_called()


@patch.object(ledger_service, "lock_group")
def test_append_expense_rejects_non_positive_amount(_lock):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_expense(1, 1, [1, 2], 0, "Dinner", session)

    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
    session.add.assert_not_called()


@patch.object(ledger_service, "lock_group")
def test_append_expense_rejects_amount_over_ceiling(_lock):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_expense(1, 1, [1, 2], MAX_AMOUNT_CENTS + 1, "Dinner", session)

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_AMOUNT
    assert err.http_status == 400
    assert err.field == "amount"
    session.add.assert_not_called()


@patch.object(ledger_service, "lock_group")
def test_append_transfer_rejects_amount_over_ceiling(_lock):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_transfer(1, 2, 1, 10**30, session)

    assert exc_info.value.code == ErrorCode.INVALID_AMOUNT
    session.add.assert_not_called()


@patch.object(ledger_service, "get_members", return_value=MEMBERS)
@patch.object(ledger_service, "lock_group")
def test_append_expense_writes_participants_in_order(_lock, _members):
    session = MagicMock()

    event = ledger_service.append_expense(1, 1, [3, 1, 2], 1000, "Dinner", session, category="Food")

    session.add.assert_called_once_with(event)
    session.flush.assert_called()
    assert event.kind == EventKind.EXPENSE
    assert event.category == "Food"
    assert [(p.member_id, p.position) for p in event.participants] == [(3, 0), (1, 1), (2, 2)]


# ── append_transfer ────────────────────────────────────────────────────────

@patch.object(ledger_service, "lock_group")
def test_append_transfer_rejects_self_settlement(_lock):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_transfer(1, 2, 2, 500, session)

    err = exc_info.value
    assert err.code == ErrorCode.SELF_SETTLEMENT
    assert err.http_status == 422
    session.add.assert_not_called()


@patch.object(ledger_service, "get_members", return_value=MEMBERS)
@patch.object(ledger_service, "lock_group")
def test_append_transfer_rejects_outsider(_lock, _members):
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        ledger_service.append_transfer(1, 2, 77, 500, session)

    err = exc_info.value
    assert err.code == ErrorCode.INVALID_MEMBER
    assert err.field == "to"
    session.add.assert_not_called()


@patch.object(ledger_service, "get_members", return_value=MEMBERS)
@patch.object(ledger_service, "lock_group")
def test_append_transfer_builds_transfer_event(_lock, _members):
    session = MagicMock()

    event = ledger_service.append_transfer(1, 2, 1, 500, session)

    assert event.kind == EventKind.TRANSFER
    assert event.payer_member_id == 2
    assert event.recipient_member_id == 1
    assert event.amount_cents == 500
    assert event.description == "Bob paid Alice"
    session.add.assert_called_once_with(event)
