"""
Unit tests for group_service guard clauses.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from splitdumb.app.errors import AppError, ErrorCode
from splitdumb.app.services import group_service, ledger_service

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _group(simplify_debts=False):
    return SimpleNamespace(id=1, name="Trip", simplify_debts=simplify_debts, created_at=NOW)


def test_create_group_rejects_repeated_member_names():
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        group_service.create_group(
            {"name": "Trip", "members": ["Alice", "Bob", "Alice"], "simplify_debts": False},
            session,
        )

    err = exc_info.value
    assert err.code == ErrorCode.DUPLICATE_MEMBER
    assert err.http_status == 409
    assert err.field == "members"
    assert "Alice" in err.message
    session.add.assert_not_called()


def test_get_group_raises_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service.get_group(99999, session)

    assert exc_info.value.code == ErrorCode.NOT_FOUND


@patch.object(ledger_service, "lock_group")
def test_add_member_rejects_taken_name(mock_lock):
    mock_lock.return_value = _group()
    session = MagicMock()
    session.execute.return_value.scalar_one_or_none.return_value = SimpleNamespace(id=3, name="Alice")

    with pytest.raises(AppError) as exc_info:
        group_service.add_member(1, "Alice", session)

    err = exc_info.value
    assert err.code == ErrorCode.DUPLICATE_MEMBER
    assert err.http_status == 409
    assert err.field == "name"
    session.add.assert_not_called()


@patch.object(ledger_service, "is_member_referenced", return_value=True)
@patch.object(ledger_service, "lock_group")
def test_remove_member_in_use(_lock, _referenced):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=2, group_id=1, name="Bob")

    with pytest.raises(AppError) as exc_info:
        group_service.remove_member(1, 2, session)

    err = exc_info.value
    assert err.code == ErrorCode.MEMBER_IN_USE
    assert err.http_status == 409
    session.delete.assert_not_called()


@patch.object(ledger_service, "lock_group")
def test_remove_member_of_other_group(_lock):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=2, group_id=7, name="Bob")

    with pytest.raises(AppError) as exc_info:
        group_service.remove_member(1, 2, session)

    assert exc_info.value.code == ErrorCode.NOT_FOUND


@patch.object(ledger_service, "is_member_referenced", return_value=False)
@patch.object(ledger_service, "lock_group")
def test_remove_unreferenced_member(_lock, _referenced):
    member = SimpleNamespace(id=2, group_id=1, name="Bob")
    session = MagicMock()
    session.get.return_value = member

    group_service.remove_member(1, 2, session)

    session.delete.assert_called_once_with(member)


@patch.object(ledger_service, "lock_group")
def test_set_simplify_toggles_without_value(mock_lock):
    mock_lock.return_value = _group(simplify_debts=False)

    first = group_service.set_simplify(1, MagicMock())
    second = group_service.set_simplify(1, MagicMock())

    assert first["simplify_debts"] is True
    assert second["simplify_debts"] is False


@patch.object(ledger_service, "lock_group")
def test_set_simplify_explicit_value(mock_lock):
    mock_lock.return_value = _group(simplify_debts=True)

    result = group_service.set_simplify(1, MagicMock(), value=True)

    assert result["simplify_debts"] is True
