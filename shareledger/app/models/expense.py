"""
models/expense.py — Expense table definition.

No business logic. No imports from services or routes.

Key design points:
  - `amount` uses Numeric(12, 2) — never Float.
  - Who shares the cost lives in expense_splits (one row per member).
  - Who has paid their share lives in expense_payments (one row per member,
    created on first toggle). Keeping each member's flag in its own row makes
    a toggle a single-row write, so concurrent toggles for different members
    of the same expense never overwrite each other.
  - Splits and payments are owned by their expense and deleted with it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shareledger.app.extensions import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        # Also enforced by the marshmallow schema.
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # RESTRICT: members are archived, never hard-deleted, while referenced.
    paid_by_member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # NUMERIC(12, 2). Input with >2 decimal places is rejected by the schema.
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    # When the purchase happened. Orders listings and payment allocation.
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="expenses",
    )

    payer: Mapped["Member"] = relationship(  # noqa: F821
        "Member",
        foreign_keys=[paid_by_member_id],
    )

    splits: Mapped[list["ExpenseSplit"]] = relationship(  # noqa: F821
        "ExpenseSplit",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseSplit.id",
    )

    payments: Mapped[list["ExpensePayment"]] = relationship(  # noqa: F821
        "ExpensePayment",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpensePayment.id",
    )

    @property
    def split_member_ids(self) -> list[int]:
        return [s.member_id for s in self.splits]

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id} "
            f"group_id={self.group_id} "
            f"amount={self.amount} "
            f"payer={self.paid_by_member_id}>"
        )
