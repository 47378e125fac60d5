"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - The app is created once per session using create_app("testing"), which
    points at in-memory SQLite unless TEST_DATABASE_URL names a real database.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Helper functions (not fixtures) are provided for common operations:
  - make_group(client, ...)      → group dict (with members)
  - add_member(...)              → HTTP response
  - make_expense(...)            → HTTP response
  - settle(...)                  → HTTP response
  - get_balances(...)            → {name: "x.xx"}
  - get_settlements(...)         → list of settlement rows

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

import pytest

from splitdumb.app import create_app
from splitdumb.app.extensions import db as _db

GROUPS_URL = "/api/v1/groups/"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.

    Tables are created with db.create_all() and dropped at teardown.
    """
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test in FK-safe order.

    Participants and events go before members, members before groups.
    """
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        from sqlalchemy import text
        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM event_participants"))
            conn.execute(text("DELETE FROM ledger_events"))
            conn.execute(text("DELETE FROM members"))
            conn.execute(text("DELETE FROM groups"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def group_url(group_id: int, suffix: str = "") -> str:
    return f"/api/v1/groups/{group_id}{suffix}"


def make_group(
    client,
    name: str = "Test Group",
    members: list[str] | None = None,
    simplify_debts: bool = False,
) -> dict:
    """Creates a group and returns the group data dict (with its members)."""
    resp = client.post(
        GROUPS_URL,
        json={
            "name": name,
            "members": members if members is not None else ["Alice", "Bob", "Carol"],
            "simplify_debts": simplify_debts,
        },
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def member_id(group: dict, name: str) -> int:
    """Looks up a member id in a group dict returned by make_group()."""
    return next(m["id"] for m in group["members"] if m["name"] == name)


def add_member(client, group_id: int, name: str):
    """Adds a member by name. Returns the HTTP response."""
    return client.post(group_url(group_id, "/members"), json={"name": name})


def make_expense(
    client,
    group_id: int,
    amount: str,
    payer: str,
    participants: list[str],
    description: str = "Dinner",
    **extra,
):
    """Creates an equally split expense and returns the HTTP response."""
    payload: dict = {
        "description": description,
        "amount": amount,
        "payer": payer,
        "participants": participants,
    }
    payload.update(extra)
    return client.post(group_url(group_id, "/expenses"), json=payload)


def settle(client, group_id: int, from_: str, to: str, amount: str):
    """Records a payment between two members. Returns the HTTP response."""
    return client.post(
        group_url(group_id, "/settle"),
        json={"from": from_, "to": to, "amount": amount},
    )


def get_balances(client, group_id: int) -> dict:
    """Returns {member name: balance string}."""
    resp = client.get(group_url(group_id, "/balances"))
    assert resp.status_code == 200, f"get_balances failed: {resp.get_json()}"
    return resp.get_json()["data"]["balances"]


def get_settlements(client, group_id: int, mode: str | None = None) -> list[dict]:
    """Returns the settlement rows, in the group's mode unless `mode` is given."""
    url = group_url(group_id, "/settlements")
    if mode is not None:
        url += f"?mode={mode}"
    resp = client.get(url)
    assert resp.status_code == 200, f"get_settlements failed: {resp.get_json()}"
    return resp.get_json()["data"]["settlements"]


def pairs(rows: list[dict]) -> list[tuple[str, str, str]]:
    """Reduces settlement rows to (from, to, amount) tuples."""
    return [(r["from"], r["to"], r["amount"]) for r in rows]
