"""
cli.py — `flask ledger ...` commands for working with a ledger from a shell.

    flask --app splitdumb.wsgi ledger init-db
    flask --app splitdumb.wsgi ledger add-expense 1 -d Dinner -a 30 -p Alice -u Alice,Bob,Carol
    flask --app splitdumb.wsgi ledger balances 1
    flask --app splitdumb.wsgi ledger settlements 1 --simplified

Commands go through the same services and group locks as the HTTP routes.
An AppError is reported as a click error (exit status 1).
"""

from __future__ import annotations

import click
from flask.cli import AppGroup
from marshmallow import ValidationError

from splitdumb.app.errors import AppError
from splitdumb.app.extensions import db, ledger_locks
from splitdumb.app.schemas.expense_schema import ExpenseSchema
from splitdumb.app.services import balance_service, expense_service, settlement_service

ledger_cli = AppGroup("ledger", help="Inspect and update group ledgers.")


def _fail(error: AppError) -> click.ClickException:
    return click.ClickException(f"{error.code}: {error.message}")


@ledger_cli.command("init-db")
def init_db() -> None:
    """Create all tables (development shortcut for `alembic upgrade head`)."""
    db.create_all()
    click.echo("Database tables created.")


@ledger_cli.command("add-expense")
@click.argument("group_id", type=int)
@click.option("-d", "--description", required=True, help="Description of the expense.")
@click.option("-a", "--amount", required=True, help="Amount, e.g. 30 or 12.50.")
@click.option("-p", "--payer", required=True, help="Name of the member who paid.")
@click.option("-u", "--participants", required=True, help="Comma-separated participant names.")
def add_expense(group_id: int, description: str, amount: str, payer: str, participants: str) -> None:
    """Append an equally split expense to GROUP_ID."""
    try:
        data = ExpenseSchema().load({
            "description": description,
            "amount": amount,
            "payer": payer.strip(),
            "participants": [name.strip() for name in participants.split(",") if name.strip()],
        })
    except ValidationError as error:
        raise click.BadParameter(str(error.messages)) from error

    try:
        with ledger_locks.write(group_id):
            expense = expense_service.create_expense(group_id, data, db.session)
            db.session.commit()
    except AppError as error:
        db.session.rollback()
        raise _fail(error) from error

    click.echo(f"Expense {expense.id} added to group {group_id}.")


@ledger_cli.command("balances")
@click.argument("group_id", type=int)
def show_balances(group_id: int) -> None:
    """Print every member's net balance in GROUP_ID."""
    try:
        with ledger_locks.read(group_id):
            result = balance_service.get_balance_response(group_id, db.session)
    except AppError as error:
        raise _fail(error) from error

    click.echo(f"Balances for group {group_id}:")
    for entry in result["members"]:
        sign = "" if entry["balance"].startswith("-") else "+"
        click.echo(f"  {entry['name']}: {sign}{entry['balance']}")


@ledger_cli.command("settlements")
@click.argument("group_id", type=int)
@click.option("--simplified", is_flag=True, help="Use the minimum-row plan.")
def show_settlements(group_id: int, simplified: bool) -> None:
    """Print who should pay whom in GROUP_ID."""
    mode = settlement_service.MODE_SIMPLIFIED if simplified else settlement_service.MODE_STABLE
    try:
        with ledger_locks.read(group_id):
            result = settlement_service.get_settlements_response(group_id, db.session, mode=mode)
    except AppError as error:
        raise _fail(error) from error

    click.echo(f"Settlements for group {group_id} ({result['mode']}):")
    if not result["settlements"]:
        click.echo("  All settled up!")
    for row in result["settlements"]:
        click.echo(f"  {row['from']} pays {row['to']} {row['amount']}")
