"""
engine — the settlement engine.

Pure, synchronous functions over an in-memory LedgerSnapshot. No Flask, no
SQLAlchemy, no I/O. Safe to call concurrently; nothing here mutates its
input or keeps state between calls.

Public surface:

    compute_balances(members, expenses)     -> {member_id: Decimal}
    compute_debt_matrix(members, expenses)  -> {a: {b: Decimal}}
    simplify(balances)                      -> [SettlementTransaction]
    is_settled(expense, member_id)          -> bool
    set_paid(expense, member_id, paid, when) -> Expense
"""

from shareledger.app.engine.balances import classify_balance, compute_balances
from shareledger.app.engine.debt_matrix import (
    classify_pair,
    compute_debt_matrix,
    net_between,
    net_pairs,
)
from shareledger.app.engine.payment_status import is_outstanding, is_settled, set_paid
from shareledger.app.engine.simplifier import replay, simplify
from shareledger.app.engine.snapshot import (
    EPSILON,
    UNKNOWN_MEMBER,
    Expense,
    LedgerSnapshot,
    Member,
    PaymentRecord,
    SettlementTransaction,
)
from shareledger.app.engine.summary import (
    PAID_SHARE_SORTS,
    SORT_DATE_DESC,
    allocate_payment,
    expenses_involving,
    member_summary,
    paid_share_totals,
    paid_shares,
    payment_progress,
    payment_statistics,
)
from shareledger.app.engine.validation import (
    InvalidExpense,
    LedgerWarning,
    UnknownMemberReference,
    collect_warnings,
)

__all__ = [
    "EPSILON",
    "PAID_SHARE_SORTS",
    "SORT_DATE_DESC",
    "UNKNOWN_MEMBER",
    "Expense",
    "InvalidExpense",
    "LedgerSnapshot",
    "LedgerWarning",
    "Member",
    "PaymentRecord",
    "SettlementTransaction",
    "UnknownMemberReference",
    "allocate_payment",
    "classify_balance",
    "classify_pair",
    "collect_warnings",
    "compute_balances",
    "compute_debt_matrix",
    "expenses_involving",
    "is_outstanding",
    "is_settled",
    "member_summary",
    "net_between",
    "net_pairs",
    "paid_share_totals",
    "paid_shares",
    "payment_progress",
    "payment_statistics",
    "replay",
    "set_paid",
    "simplify",
]
