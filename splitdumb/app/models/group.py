"""
models/group.py — Group table definition.

A group owns its members and its full ledger. Deleting a group deletes
both (ORM cascade + ON DELETE CASCADE).

No business logic. No imports from services or routes.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitdumb.app.extensions import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Group(db.Model):
    # 'groups' is a reserved word in some SQL dialects; SQLAlchemy quotes it.
    __tablename__ = "groups"

    __table_args__ = (
        # Also enforced by the marshmallow schema; the schema is the primary gate.
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Read-path selector for GET /settlements. Toggling never touches the ledger.
    simplify_debts: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    members: Mapped[list["Member"]] = relationship(  # noqa: F821
        "Member",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Member.id",
    )

    events: Mapped[list["LedgerEvent"]] = relationship(  # noqa: F821
        "LedgerEvent",
        back_populates="group",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r}>"
