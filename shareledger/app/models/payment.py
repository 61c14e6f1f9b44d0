"""
models/payment.py — ExpensePayment table definition.

Sparse per-member paid flags. A missing row means the member's share is
outstanding. Rows are created on the first toggle and updated in place
afterwards; `paid_at` is cleared when a payment is reversed.

UNIQUE(expense_id, member_id) is what makes a toggle atomic per member: the
write touches exactly one row, never the whole expense.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, UniqueConstraint, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shareledger.app.extensions import db


class ExpensePayment(db.Model):
    __tablename__ = "expense_payments"

    __table_args__ = (
        UniqueConstraint(
            "expense_id",
            "member_id",
            name="uq_expense_payments_expense_member",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    member_id: Mapped[int] = mapped_column(
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )

    paid: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="payments",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ExpensePayment expense_id={self.expense_id} "
            f"member_id={self.member_id} "
            f"paid={self.paid}>"
        )
