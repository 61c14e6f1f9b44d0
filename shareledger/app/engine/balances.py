"""
engine/balances.py — Balance calculator.

compute_balances() is the single source of truth for per-member net
positions. Positive = the group owes this member; negative = this member
owes the group.

Algorithm, per valid expense:
  1. share = amount / len(split_with), exact Decimal division, no rounding.
  2. Credit the payer with the full amount.
  3. Debit every split member by `share`, the payer's own share included.
  4. When payment status is honored, a non-payer's paid share is taken out
     of both sides: the member is not debited and the payer is not credited
     for it. The remaining balances describe only what is still outstanding.

With honor_payments=False every share counts and sum(balances) == 0 up to
the remainder of non-terminating divisions (well below 1e-6).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Sequence

from shareledger.app.engine.payment_status import is_outstanding
from shareledger.app.engine.snapshot import (
    EPSILON,
    ZERO,
    Expense,
    Member,
    MemberId,
)
from shareledger.app.engine.validation import resolve_member, valid_expenses


# ── Status labels ──────────────────────────────────────────────────────────

OWED    = "owed"      # balance > epsilon: the group owes this member
OWES    = "owes"      # balance < -epsilon: this member owes the group
SETTLED = "settled"   # |balance| <= epsilon


def classify_balance(balance: Decimal, epsilon: Decimal = EPSILON) -> str:
    if balance > epsilon:
        return OWED
    if balance < -epsilon:
        return OWES
    return SETTLED


def compute_balances(
        members: Sequence[Member],
        expenses: Iterable[Expense],
        honor_payments: bool = True,
) -> dict[MemberId, Decimal]:
    """
    Returns {member_id: net_balance} for every member, in member-list order.

    A member who appears in no expense is still present with a zero balance
    so callers can render them as settled. If an expense references an id
    outside `members`, its amounts are booked under UNKNOWN_MEMBER, which is
    appended after the real members only when it was used.

    Invalid expenses are skipped (see validation.valid_expenses). Never raises
    for malformed input and never mutates it.
    """
    known_ids = {m.id for m in members}
    balances: dict[MemberId, Decimal] = {m.id: ZERO for m in members}

    for expense in valid_expenses(members, expenses):
        amount = Decimal(expense.amount)
        share = expense.share
        payer = resolve_member(expense.payer, known_ids)

        credit = amount
        for split_member in expense.split_with:
            if honor_payments and not is_outstanding(expense, split_member):
                if split_member != expense.payer:
                    # Paid share leaves the ledger on both sides.
                    credit -= share
                    continue
            target = resolve_member(split_member, known_ids)
            balances[target] = balances.get(target, ZERO) - share

        balances[payer] = balances.get(payer, ZERO) + credit

    return balances


def balance_sum(balances: dict[MemberId, Decimal]) -> Decimal:
    return sum(balances.values(), ZERO)
