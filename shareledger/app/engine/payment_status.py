"""
engine/payment_status.py — Payment-status overlay on expenses.

This module is the only place that reads Expense.payments. The balance
calculator and the debt matrix builder ask is_outstanding() whether a share
still counts; they never inspect the raw map themselves.

Rules:
  - No entry for a member means their share is outstanding.
  - set_paid(..., True, when) marks it settled and records `when`.
  - set_paid(..., False, ...) reverses a payment and clears the timestamp.
  - Re-applying the flag a member already has returns an equal Expense.
  - The payer's own share is always settled. A person cannot owe themselves.

Lookups are by id equality, so the same expense loaded twice from storage
behaves identically.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from shareledger.app.engine.snapshot import Expense, MemberId, PaymentRecord


def is_settled(expense: Expense, member_id: MemberId) -> bool:
    if member_id == expense.payer:
        return True
    record = expense.payments.get(member_id)
    return bool(record is not None and record.paid)


def is_outstanding(expense: Expense, member_id: MemberId) -> bool:
    return not is_settled(expense, member_id)


def set_paid(
        expense: Expense,
        member_id: MemberId,
        paid: bool,
        when: datetime | None = None,
) -> Expense:
    """
    Returns a copy of `expense` with member_id's paid flag set to `paid`.

    The input is left untouched. Setting an already-paid member to paid keeps
    the original timestamp, so the operation is idempotent in both directions.
    """
    current = expense.payments.get(member_id)
    if paid:
        if current is not None and current.paid:
            return expense
        record = PaymentRecord(paid=True, paid_at=when)
    else:
        if current is not None and not current.paid:
            return expense
        if current is None:
            # Absent and explicitly-unpaid are observably the same state.
            return expense
        record = PaymentRecord(paid=False, paid_at=None)

    payments = dict(expense.payments)
    payments[member_id] = record
    return replace(expense, payments=payments)


def outstanding_members(expense: Expense) -> list[MemberId]:
    """Split members, in split order, whose share is not yet settled."""
    return [m for m in expense.split_with if is_outstanding(expense, m)]
