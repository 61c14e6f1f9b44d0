"""
tests/unit/test_debt_matrix.py — Unit tests for engine.compute_debt_matrix and its views.

What this file proves:
  - The matrix is square over every member, diagonal always zero
  - Only outstanding, non-payer shares produce cells
  - The matrix is gross: opposite debts are NOT netted in the cells
  - net_between / classify_pair / net_pairs give the netted view
  - column sum - row sum == balance for every member
  - Unknown member ids add an unknown row/column only when used
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from shareledger.app.engine import (
    UNKNOWN_MEMBER,
    Expense,
    Member,
    PaymentRecord,
    classify_pair,
    compute_balances,
    compute_debt_matrix,
    net_between,
    net_pairs,
)
from shareledger.app.engine.debt_matrix import (
    PAIR_OWES,
    PAIR_RECEIVABLE,
    PAIR_SETTLED,
    total_owed_by,
    total_owed_to,
)

MEMBERS = [Member(1, "Alice"), Member(2, "Bob"), Member(3, "Carol")]


def test_empty_ledger_is_all_zero_square():
    matrix = compute_debt_matrix(MEMBERS, [])

    assert list(matrix) == [1, 2, 3]
    for row in matrix.values():
        assert list(row) == [1, 2, 3]
        assert all(v == Decimal("0") for v in row.values())


def test_split_members_owe_payer_their_share():
    expense = Expense(id=1, amount=Decimal("90"), payer=1, split_with=(1, 2, 3))

    matrix = compute_debt_matrix(MEMBERS, [expense])

    assert matrix[2][1] == Decimal("30")
    assert matrix[3][1] == Decimal("30")
    assert matrix[1][1] == Decimal("0")
    assert total_owed_by(matrix, 1) == Decimal("0")
    assert total_owed_to(matrix, 1) == Decimal("60")


def test_opposite_debts_stay_gross():
    expenses = [
        Expense(id=1, amount=Decimal("40"), payer=1, split_with=(1, 2)),
        Expense(id=2, amount=Decimal("30"), payer=2, split_with=(1, 2)),
    ]

    matrix = compute_debt_matrix(MEMBERS, expenses)

    assert matrix[2][1] == Decimal("20")
    assert matrix[1][2] == Decimal("15")
    assert net_between(matrix, 2, 1) == Decimal("5")
    assert net_between(matrix, 1, 2) == Decimal("-5")
    assert classify_pair(matrix, 2, 1) == PAIR_OWES
    assert classify_pair(matrix, 1, 2) == PAIR_RECEIVABLE
    assert classify_pair(matrix, 1, 3) == PAIR_SETTLED


def test_paid_shares_are_excluded():
    expense = Expense(
        id=1,
        amount=Decimal("90"),
        payer=1,
        split_with=(1, 2, 3),
        payments={2: PaymentRecord(True, datetime(2026, 2, 1, tzinfo=timezone.utc))},
    )

    matrix = compute_debt_matrix(MEMBERS, [expense])

    assert matrix[2][1] == Decimal("0")
    assert matrix[3][1] == Decimal("30")

    gross = compute_debt_matrix(MEMBERS, [expense], honor_payments=False)
    assert gross[2][1] == Decimal("30")


def test_column_minus_row_equals_balance():
    expenses = [
        Expense(id=1, amount=Decimal("90"), payer=1, split_with=(1, 2, 3)),
        Expense(id=2, amount=Decimal("30"), payer=2, split_with=(2, 3)),
        Expense(id=3, amount=Decimal("12"), payer=3, split_with=(1, 2)),
    ]

    matrix = compute_debt_matrix(MEMBERS, expenses)
    balances = compute_balances(MEMBERS, expenses)

    for member in MEMBERS:
        assert (
            total_owed_to(matrix, member.id) - total_owed_by(matrix, member.id)
            == balances[member.id]
        )


def test_net_pairs_orients_from_net_debtor():
    expenses = [
        Expense(id=1, amount=Decimal("40"), payer=1, split_with=(1, 2)),
        Expense(id=2, amount=Decimal("30"), payer=2, split_with=(1, 2)),
        Expense(id=3, amount=Decimal("10"), payer=3, split_with=(1, 3)),
    ]

    pairs = net_pairs(compute_debt_matrix(MEMBERS, expenses))

    assert pairs == [
        {"from_member_id": 2, "to_member_id": 1, "amount": Decimal("5")},
        {"from_member_id": 1, "to_member_id": 3, "amount": Decimal("5")},
    ]


def test_unknown_member_adds_row_and_column():
    expense = Expense(id=1, amount=Decimal("20"), payer=1, split_with=(1, 99))

    matrix = compute_debt_matrix(MEMBERS, [expense])

    assert list(matrix) == [1, 2, 3, UNKNOWN_MEMBER]
    assert matrix[UNKNOWN_MEMBER][1] == Decimal("10")
    assert all(UNKNOWN_MEMBER in row for row in matrix.values())


def test_invalid_expense_is_skipped():
    expense = Expense(id=1, amount=Decimal("20"), payer=1, split_with=())

    matrix = compute_debt_matrix(MEMBERS, [expense])

    assert all(v == Decimal("0") for row in matrix.values() for v in row.values())
