"""Initial schema — groups, members, and the ledger event tables.

Revision: 001_initial_schema
Created:  2026-10-17

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  Tables in FK dependency order (groups → members → ledger_events
  → event_participants), then indexes.

Money is stored as BIGINT cents. There is no balance or share table:
both are derived by replaying ledger_events.

ON DELETE policies:
  members.group_id                  → CASCADE   (members go with their group)
  ledger_events.group_id            → CASCADE   (ledger goes with its group)
  ledger_events.*_member_id         → RESTRICT  (cannot drop a member the ledger names)
  event_participants.event_id       → CASCADE   (participants owned by their event)
  event_participants.member_id      → RESTRICT
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    """Apply the full initial schema."""

    # ── Step 1: groups ─────────────────────────────────────────────────────
    # simplify_debts only selects the settlement read path.

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "simplify_debts",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    # ── Step 2: members ────────────────────────────────────────────────────
    # UNIQUE(group_id, name): the API addresses members by name.

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_members_group"),
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_members"),
        sa.UniqueConstraint("group_id", "name", name="uq_members_group_name"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_members_name_nonempty",
        ),
    )

    # ── Step 3: ledger_events ──────────────────────────────────────────────
    # kind is stored as a short string ('expense' | 'transfer'), not a
    # native enum, so the same DDL works on PostgreSQL and SQLite.

    op.create_table(
        "ledger_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_ledger_events_group"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column(
            "payer_member_id",
            sa.Integer(),
            sa.ForeignKey("members.id", ondelete="RESTRICT", name="fk_ledger_events_payer"),
            nullable=False,
        ),
        sa.Column(
            "recipient_member_id",
            sa.Integer(),
            sa.ForeignKey("members.id", ondelete="RESTRICT", name="fk_ledger_events_recipient"),
            nullable=True,
        ),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_ledger_events"),
        sa.CheckConstraint("amount_cents > 0", name="ck_ledger_events_amount_positive"),
        sa.CheckConstraint(
            "kind IN ('expense', 'transfer')",
            name="ck_ledger_events_kind",
        ),
        sa.CheckConstraint(
            "(kind = 'transfer' AND recipient_member_id IS NOT NULL "
            "AND recipient_member_id <> payer_member_id) "
            "OR (kind = 'expense' AND recipient_member_id IS NULL)",
            name="ck_ledger_events_transfer_parties",
        ),
    )

    # ── Step 4: event_participants ─────────────────────────────────────────
    # position keeps the declaration order that share rounding depends on.

    op.create_table(
        "event_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("ledger_events.id", ondelete="CASCADE", name="fk_event_participants_event"),
            nullable=False,
        ),
        sa.Column(
            "member_id",
            sa.Integer(),
            sa.ForeignKey("members.id", ondelete="RESTRICT", name="fk_event_participants_member"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_event_participants"),
        sa.UniqueConstraint("event_id", "member_id", name="uq_event_participants_member"),
        sa.UniqueConstraint("event_id", "position", name="uq_event_participants_position"),
    )

    # ── Step 5: Indexes ────────────────────────────────────────────────────
    # Names match what SQLAlchemy derives from index=True on the models.

    op.create_index("ix_members_group_id", "members", ["group_id"])
    op.create_index("ix_ledger_events_group_id", "ledger_events", ["group_id"])
    # Replay scans one group's events in (created_at, id) order.
    op.create_index(
        "idx_ledger_events_group_replay",
        "ledger_events",
        ["group_id", "created_at", "id"],
    )
    op.create_index("ix_event_participants_event_id", "event_participants", ["event_id"])
    op.create_index("ix_event_participants_member_id", "event_participants", ["member_id"])


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.

    Provided for local development resets. In production, write a
    corrective migration instead.
    """
    op.drop_index("ix_event_participants_member_id", table_name="event_participants")
    op.drop_index("ix_event_participants_event_id",  table_name="event_participants")
    op.drop_index("idx_ledger_events_group_replay",  table_name="ledger_events")
    op.drop_index("ix_ledger_events_group_id",       table_name="ledger_events")
    op.drop_index("ix_members_group_id",             table_name="members")

    op.drop_table("event_participants")
    op.drop_table("ledger_events")
    op.drop_table("members")
    op.drop_table("groups")
