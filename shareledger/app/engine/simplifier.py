"""
engine/simplifier.py — Settlement simplifier (greedy two-pointer debt netting).

Collapses an N-member web of debts into a short list of payment
instructions that, if all executed, bring every balance to zero.

Ordering contract:
  Debtors and creditors keep the iteration order of the input mapping.
  compute_balances() returns members in member-list order, so the plan for a
  given snapshot is fully deterministic. The greedy result depends on this
  order: a different order can produce a different but equally valid plan.

Guarantees:
  - Replaying the plan (debit from_member, credit to_member) reproduces the
    input balances within epsilon.
  - At most max(0, non_zero_members - 1) transactions: every step retires at
    least one debtor or creditor, and the final step retires both.
  - No transaction has from_member == to_member or amount <= epsilon.

This is a greedy approximation. Finding the true minimum number of
transactions is NP-hard in general and is not attempted.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Mapping

from shareledger.app.engine.snapshot import (
    EPSILON,
    MemberId,
    SettlementTransaction,
)


def _partition(
        balances: Mapping[MemberId, Decimal],
        epsilon: Decimal,
) -> tuple[list[list], list[list]]:
    """Splits balances into [member_id, remaining] debtors and creditors."""
    debtors: list[list] = []
    creditors: list[list] = []
    for member_id, balance in balances.items():
        balance = Decimal(balance)
        if balance < -epsilon:
            debtors.append([member_id, -balance])
        elif balance > epsilon:
            creditors.append([member_id, balance])
    return debtors, creditors


def simplify(
        balances: Mapping[MemberId, Decimal],
        epsilon: Decimal = EPSILON,
) -> list[SettlementTransaction]:
    """
    Returns the settlement plan for `balances`.

    An empty list means everyone is settled (all |balance| <= epsilon).
    Leftover amounts at or below epsilon on either side when one list runs
    out are rounding noise and are dropped, not emitted.
    """
    debtors, creditors = _partition(balances, epsilon)
    plan: list[SettlementTransaction] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]

        settle = min(debtor[1], creditor[1])
        if settle > epsilon:
            plan.append(SettlementTransaction(debtor[0], creditor[0], settle))

        debtor[1] -= settle
        creditor[1] -= settle

        # Both fronts may retire in the same step.
        if debtor[1] <= epsilon:
            i += 1
        if creditor[1] <= epsilon:
            j += 1

    return plan


def replay(
        balances: Mapping[MemberId, Decimal],
        plan: list[SettlementTransaction],
) -> dict[MemberId, Decimal]:
    """Applies the plan to a copy of `balances` and returns what is left."""
    remaining = {member_id: Decimal(b) for member_id, b in balances.items()}
    for txn in plan:
        remaining[txn.from_member] += txn.amount
        remaining[txn.to_member] -= txn.amount
    return remaining
