"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy, marshmallow and the ledger lock registry as
module-level objects so they can be imported anywhere without creating
circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db`, `ma` or `ledger_locks` from here wherever needed.

    from splitdumb.app.extensions import db, ledger_locks

Do not pass the app object directly to SQLAlchemy() or Marshmallow() at
import time — that would prevent running tests with a separate test app
instance.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

from splitdumb.app.locks import GroupLockRegistry

db = SQLAlchemy()

# Marshmallow instance, available for SQLAlchemy model serialization helpers.
#
# IMPORTANT: schema inheritance rule.
#   All validation Schema classes (in app/schemas/) must inherit from
#   marshmallow.Schema directly, NOT from ma.Schema.
#
#   ma.Schema requires an active Flask application context. Unit tests in
#   tests/unit/ run without a Flask app.
ma = Marshmallow()

# One readers/writer lock per group. Timeout comes from
# LEDGER_LOCK_TIMEOUT_SECONDS at init_app() time.
ledger_locks = GroupLockRegistry()
