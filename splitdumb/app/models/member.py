"""
models/member.py — Member table definition.

A member belongs to exactly one group. The engine always keys members by
their numeric id; the display name is unique within the group and is only
resolved to an id at the API boundary.

FK policy: group_id ON DELETE CASCADE — members go with their group.
Ledger events reference members with ON DELETE RESTRICT, so a member that
appears in the ledger cannot be removed (MEMBER_IN_USE at the service layer).
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitdumb.app.extensions import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Member(db.Model):
    __tablename__ = "members"

    __table_args__ = (
        UniqueConstraint("group_id", "name", name="uq_members_group_name"),
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_members_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Member id={self.id} group_id={self.group_id} name={self.name!r}>"
