"""Initial schema — groups, members, expenses, splits and payment flags.

Revision: 001_initial_schema
Created:  2026-10-19

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order (FK dependency order):
  groups → members → expenses → expense_splits, expense_payments

ON DELETE policies:
  members.group_id              → CASCADE   (members belong to a group)
  expenses.group_id             → CASCADE   (expenses belong to a group)
  expenses.paid_by_member_id    → RESTRICT  (members are archived, not deleted)
  expense_splits.expense_id     → CASCADE   (split rows owned by the expense)
  expense_splits.member_id      → RESTRICT
  expense_payments.expense_id   → CASCADE   (flags owned by the expense)
  expense_payments.member_id    → RESTRICT
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

    # ── groups ─────────────────────────────────────────────────────────────
    # password_hash holds a bcrypt hash; the raw password is never stored.

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_by",
            sa.String(100),
            nullable=False,
            server_default="System",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    # ── members ────────────────────────────────────────────────────────────
    # archived_at IS NULL = active.

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_members_group"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_members"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_members_name_nonempty",
        ),
    )

    # ── expenses ───────────────────────────────────────────────────────────
    # NUMERIC(12, 2) amount, strictly positive.

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_expenses_group"),
            nullable=False,
        ),
        sa.Column(
            "paid_by_member_id",
            sa.Integer(),
            sa.ForeignKey("members.id", ondelete="RESTRICT", name="fk_expenses_payer"),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    # ── expense_splits ─────────────────────────────────────────────────────
    # One row per member sharing the expense. The share is never stored.

    op.create_table(
        "expense_splits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE", name="fk_expense_splits_expense"),
            nullable=False,
        ),
        sa.Column(
            "member_id",
            sa.Integer(),
            sa.ForeignKey("members.id", ondelete="RESTRICT", name="fk_expense_splits_member"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_expense_splits"),
        sa.UniqueConstraint(
            "expense_id",
            "member_id",
            name="uq_expense_splits_expense_member",
        ),
    )

    # ── expense_payments ───────────────────────────────────────────────────
    # The UNIQUE pair is the ON CONFLICT target of the payment toggle upsert.

    op.create_table(
        "expense_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE", name="fk_expense_payments_expense"),
            nullable=False,
        ),
        sa.Column(
            "member_id",
            sa.Integer(),
            sa.ForeignKey("members.id", ondelete="RESTRICT", name="fk_expense_payments_member"),
            nullable=False,
        ),
        sa.Column(
            "paid",
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expense_payments"),
        sa.UniqueConstraint(
            "expense_id",
            "member_id",
            name="uq_expense_payments_expense_member",
        ),
    )

    # ── Indexes ────────────────────────────────────────────────────────────
    # Names match the ones SQLAlchemy derives from index=True in the models.

    op.create_index("ix_members_group_id", "members", ["group_id"])
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])
    op.create_index("ix_expense_splits_expense_id", "expense_splits", ["expense_id"])
    op.create_index("ix_expense_payments_expense_id", "expense_payments", ["expense_id"])


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.
    Intended for local development reset only.
    """
    op.drop_index("ix_expense_payments_expense_id", table_name="expense_payments")
    op.drop_index("ix_expense_splits_expense_id", table_name="expense_splits")
    op.drop_index("ix_expenses_group_id", table_name="expenses")
    op.drop_index("ix_members_group_id", table_name="members")

    op.drop_table("expense_payments")
    op.drop_table("expense_splits")
    op.drop_table("expenses")
    op.drop_table("members")
    op.drop_table("groups")
