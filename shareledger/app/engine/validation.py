"""
engine/validation.py — Per-expense checks shared by the balance and matrix builders.

Two failure classes:

  InvalidExpense          — empty split_with or a non-positive amount.
                            The expense contributes nothing; it is skipped.
  UnknownMemberReference  — payer or split member missing from the member list.
                            Soft: the amount is booked against UNKNOWN_MEMBER
                            so the ledger still sums to zero.

Neither escapes compute_balances() or compute_debt_matrix(). One malformed
historical record must not blank out the whole ledger view, so both builders
log the problem and carry on. collect_warnings() exposes the same findings
to the API layer, which returns them in the response `warnings` array.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Hashable, Iterable

from shareledger.app.engine.snapshot import (
    UNKNOWN_MEMBER,
    ZERO,
    Expense,
    Member,
    MemberId,
)

logger = logging.getLogger(__name__)


class InvalidExpense(ValueError):
    """An expense that cannot contribute to any balance."""

    def __init__(self, expense_id: Hashable, reason: str) -> None:
        super().__init__(f"Expense {expense_id!r}: {reason}")
        self.expense_id = expense_id
        self.reason = reason


class UnknownMemberReference(LookupError):
    """An expense references a member id that is not in the member list."""

    def __init__(self, expense_id: Hashable, member_id: MemberId, role: str) -> None:
        super().__init__(
            f"Expense {expense_id!r} references unknown {role} {member_id!r}"
        )
        self.expense_id = expense_id
        self.member_id = member_id
        self.role = role


@dataclass(frozen=True)
class LedgerWarning:
    code: str
    expense_id: Hashable
    message: str

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "expense_id": self.expense_id,
            "message": self.message,
        }


# Warning codes mirror errors.WarningCode; duplicated as literals so the
# engine stays importable without the Flask app package.
INVALID_EXPENSE_SKIPPED = "INVALID_EXPENSE_SKIPPED"
UNKNOWN_MEMBER_REFERENCE = "UNKNOWN_MEMBER_REFERENCE"


def validate_expense(expense: Expense) -> None:
    """Raises InvalidExpense if the expense cannot be split."""
    if not expense.split_with:
        raise InvalidExpense(expense.id, "split_with is empty")
    try:
        amount = Decimal(expense.amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidExpense(
            expense.id, f"amount {expense.amount!r} is not a number"
        ) from None
    if not amount.is_finite() or amount <= ZERO:
        raise InvalidExpense(expense.id, f"amount {expense.amount} must be positive")


def find_unknown_references(
        expense: Expense,
        known_ids: set,
) -> list[UnknownMemberReference]:
    """Returns one UnknownMemberReference per missing payer / split member."""
    problems = []
    if expense.payer not in known_ids:
        problems.append(UnknownMemberReference(expense.id, expense.payer, "payer"))
    for member_id in expense.split_with:
        if member_id not in known_ids:
            problems.append(
                UnknownMemberReference(expense.id, member_id, "split member")
            )
    return problems


def resolve_member(member_id: MemberId, known_ids: set) -> MemberId:
    """Maps ids outside the member list onto the UNKNOWN_MEMBER bucket."""
    return member_id if member_id in known_ids else UNKNOWN_MEMBER


def valid_expenses(
        members: Iterable[Member],
        expenses: Iterable[Expense],
) -> list[Expense]:
    """
    Filters the snapshot down to expenses that can contribute.

    Invalid expenses are logged and dropped. Unknown member references are
    logged but the expense is kept; callers route those ids through
    resolve_member().
    """
    known_ids = {m.id for m in members}
    result = []
    for expense in expenses:
        try:
            validate_expense(expense)
        except InvalidExpense as exc:
            logger.warning("Skipping expense: %s", exc)
            continue
        for problem in find_unknown_references(expense, known_ids):
            logger.warning("%s; booking under %r", problem, UNKNOWN_MEMBER)
        result.append(expense)
    return result


def collect_warnings(
        members: Iterable[Member],
        expenses: Iterable[Expense],
) -> list[LedgerWarning]:
    """Returns every problem in the snapshot as a LedgerWarning, in expense order."""
    known_ids = {m.id for m in members}
    warnings: list[LedgerWarning] = []
    for expense in expenses:
        try:
            validate_expense(expense)
        except InvalidExpense as exc:
            warnings.append(
                LedgerWarning(INVALID_EXPENSE_SKIPPED, expense.id, str(exc))
            )
            continue
        for problem in find_unknown_references(expense, known_ids):
            warnings.append(
                LedgerWarning(UNKNOWN_MEMBER_REFERENCE, expense.id, str(problem))
            )
    return warnings
