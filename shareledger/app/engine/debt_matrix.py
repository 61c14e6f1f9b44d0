"""
engine/debt_matrix.py — Pairwise who-owes-whom matrix.

matrix[a][b] is the amount member `a` still owes member `b`, gross. The
matrix is deliberately not netted: if `a` owes `b` through one expense and
`b` owes `a` through another, both cells stay positive. The per-pair net
view is derived on demand by net_between().

Row sum    = everything `a` owes (total_owed_by).
Column sum = everything owed to `a` (total_owed_to).
For the unfiltered ledger: total_owed_to(a) - total_owed_by(a) == balance[a].
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

DebtMatrix = dict[MemberId, dict[MemberId, Decimal]]

# Pair status labels, from the row member's point of view.
PAIR_OWES       = "owes"        # row member owes column member
PAIR_RECEIVABLE = "receivable"  # column member owes row member
PAIR_SETTLED    = "settled"


def _empty_matrix(ids: list[MemberId]) -> DebtMatrix:
    return {a: {b: ZERO for b in ids} for a in ids}


def _add_member(matrix: DebtMatrix, member_id: MemberId) -> None:
    """Grows the square matrix by one row and one column."""
    for row in matrix.values():
        row[member_id] = ZERO
    matrix[member_id] = {b: ZERO for b in matrix}
    matrix[member_id][member_id] = ZERO


def compute_debt_matrix(
        members: Sequence[Member],
        expenses: Iterable[Expense],
        honor_payments: bool = True,
) -> DebtMatrix:
    """
    Builds the full square matrix over every ordered pair of members.

    For each valid expense and each split member m != payer whose share is
    outstanding, `share` is added to matrix[m][payer]. The payer's own share
    never produces a cell. Ids outside `members` are folded into an
    UNKNOWN_MEMBER row/column that only appears when used.
    """
    ids = [m.id for m in members]
    known_ids = set(ids)
    matrix = _empty_matrix(ids)

    for expense in valid_expenses(members, expenses):
        share = expense.share
        payer = resolve_member(expense.payer, known_ids)

        for split_member in expense.split_with:
            if split_member == expense.payer:
                continue
            if honor_payments and not is_outstanding(expense, split_member):
                continue
            debtor = resolve_member(split_member, known_ids)
            if debtor == payer:
                # Two different unknown ids collapse into the same bucket.
                continue
            for member_id in (debtor, payer):
                if member_id not in matrix:
                    _add_member(matrix, member_id)
            matrix[debtor][payer] += share

    return matrix


# ── Derived views ──────────────────────────────────────────────────────────

def net_between(matrix: DebtMatrix, a: MemberId, b: MemberId) -> Decimal:
    """Positive when `a` owes `b` on balance, negative when `b` owes `a`."""
    return matrix[a][b] - matrix[b][a]


def classify_pair(
        matrix: DebtMatrix,
        a: MemberId,
        b: MemberId,
        epsilon: Decimal = EPSILON,
) -> str:
    net = net_between(matrix, a, b)
    if net > epsilon:
        return PAIR_OWES
    if net < -epsilon:
        return PAIR_RECEIVABLE
    return PAIR_SETTLED


def total_owed_by(matrix: DebtMatrix, a: MemberId) -> Decimal:
    return sum(matrix[a].values(), ZERO)


def total_owed_to(matrix: DebtMatrix, a: MemberId) -> Decimal:
    return sum((row[a] for row in matrix.values()), ZERO)


def net_pairs(matrix: DebtMatrix, epsilon: Decimal = EPSILON) -> list[dict]:
    """
    The netted view: one entry per unordered pair that is not settled.

    Pairs are visited in matrix order (a before b) and each entry is oriented
    so that `from_member_id` is the net debtor.
    """
    ids = list(matrix)
    pairs = []
    for i, a in enumerate(ids):
        for b in ids[i + 1:]:
            net = net_between(matrix, a, b)
            if abs(net) <= epsilon:
                continue
            debtor, creditor = (a, b) if net > 0 else (b, a)
            pairs.append({
                "from_member_id": debtor,
                "to_member_id": creditor,
                "amount": abs(net),
            })
    return pairs
