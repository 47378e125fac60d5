"""
models/ledger_event.py — Ledger event and participant table definitions.

A group's ledger is an ordered collection of events of two kinds:

  EXPENSE   payer_member_id fronted amount_cents for the participants listed
            in event_participants (declaration order kept in `position`).
  TRANSFER  payer_member_id paid amount_cents to recipient_member_id.
            Produced only by the settlement recorder; never edited.

Key design points:
  - Amounts are integer minor units (cents). Never Float, never Numeric.
  - Shares, pairwise debts and balances are NOT stored. They are derived by
    replaying the events (services/balance_service.py).
  - Removing an expense deletes the row and its participants; the next replay
    behaves as if it never existed.
  - Member FKs are ON DELETE RESTRICT: a member referenced by the ledger
    cannot be removed.

No business logic. No imports from services or routes.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitdumb.app.extensions import db


class EventKind(str, enum.Enum):
    EXPENSE  = "expense"
    TRANSFER = "transfer"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'expense'), not names ('EXPENSE')."""
    return [member.value for member in enum_cls]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Models ─────────────────────────────────────────────────────────────────

class LedgerEvent(db.Model):
    __tablename__ = "ledger_events"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_ledger_events_amount_positive"),
        CheckConstraint(
            "kind IN ('expense', 'transfer')",
            name="ck_ledger_events_kind",
        ),
        # Transfers always name a recipient distinct from the sender;
        # expenses never do.
        CheckConstraint(
            "(kind = 'transfer' AND recipient_member_id IS NOT NULL "
            "AND recipient_member_id <> payer_member_id) "
            "OR (kind = 'expense' AND recipient_member_id IS NULL)",
            name="ck_ledger_events_transfer_parties",
        ),
        Index("idx_ledger_events_group_replay", "group_id", "created_at", "id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    kind: Mapped[EventKind] = mapped_column(
        Enum(
            EventKind,
            name="ledger_event_kind",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    # Expense payer, or transfer sender.
    payer_member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Transfer receiver. NULL for expenses.
    recipient_member_id: Mapped[int | None] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    category: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    # Set when an expense is replaced through PUT.
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="events",
    )

    payer: Mapped["Member"] = relationship(  # noqa: F821
        "Member",
        foreign_keys=[payer_member_id],
    )

    recipient: Mapped["Member"] = relationship(  # noqa: F821
        "Member",
        foreign_keys=[recipient_member_id],
    )

    participants: Mapped[list["EventParticipant"]] = relationship(
        "EventParticipant",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="EventParticipant.position",
    )

    # ── Convenience properties ─────────────────────────────────────────────
    # Read-only; they only inspect column values.

    @property
    def participant_ids(self) -> list[int]:
        """Participant member ids in declaration order."""
        return [p.member_id for p in self.participants]

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<LedgerEvent id={self.id} "
            f"group_id={self.group_id} "
            f"kind={self.kind.value} "
            f"amount_cents={self.amount_cents}>"
        )


class EventParticipant(db.Model):
    __tablename__ = "event_participants"

    __table_args__ = (
        UniqueConstraint("event_id", "member_id", name="uq_event_participants_member"),
        UniqueConstraint("event_id", "position", name="uq_event_participants_position"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    event_id: Mapped[int] = mapped_column(
        ForeignKey("ledger_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # 0-based declaration order. Share rounding hands leftover cents to the
    # lowest positions, so this order must survive a round trip.
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    event: Mapped["LedgerEvent"] = relationship(
        "LedgerEvent",
        back_populates="participants",
    )

    member: Mapped["Member"] = relationship(  # noqa: F821
        "Member",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<EventParticipant event_id={self.event_id} "
            f"member_id={self.member_id} position={self.position}>"
        )
