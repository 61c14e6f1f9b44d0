"""
services/expense_service.py — Expense business logic.

Rules enforced here (the schema cannot perform DB lookups):
  PAYER_NOT_IN_GROUP (422)         — paid_by_member_id must be an active member of the group
  SPLIT_MEMBER_NOT_IN_GROUP (422)  — every split member must be an active member of the group

Equal split:
  Nothing about the share is stored. An expense keeps its amount and the list
  of members sharing it; the settlement engine divides amount / len(split)
  exactly when it needs a share.

Editing the split:
  Members dropped from the split also lose their payment row for that expense.
  Members that stay keep their paid flag, even when the amount changes.

Delete is a hard delete. Splits and payment rows go with the expense.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain ints and dicts; returns ORM objects or raises AppError.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shareledger.app import engine
from shareledger.app.errors import AppError, ErrorCode
from shareledger.app.models.expense import Expense
from shareledger.app.models.member import Member
from shareledger.app.models.split import ExpenseSplit
from shareledger.app.services.balance_service import money
from shareledger.app.services.ledger_service import (
    get_expense_or_404,
    get_group_or_404,
    set_expense_payment_flag,
    to_engine_expense,
)

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_active_member_ids(group_id: int, session: Session) -> set[int]:
    stmt = select(Member.id).where(
        Member.group_id == group_id,
        Member.archived_at.is_(None),
    )
    return set(session.execute(stmt).scalars().all())


def _validate_payer_is_member(
        paid_by_member_id: int,
        group_id: int,
        member_ids: set[int],
) -> None:
    """Raises PAYER_NOT_IN_GROUP (422) if the payer is not an active member."""
    if paid_by_member_id not in member_ids:
        raise AppError(
            ErrorCode.PAYER_NOT_IN_GROUP,
            f"Member {paid_by_member_id} is not a member of group {group_id}.",
            422,
            field="paid_by_member_id",
        )


def _validate_split_members(
        split_with: list[int],
        group_id: int,
        member_ids: set[int],
) -> None:
    """Raises SPLIT_MEMBER_NOT_IN_GROUP (422) on the first unknown split member."""
    for member_id in split_with:
        if member_id not in member_ids:
            raise AppError(
                ErrorCode.SPLIT_MEMBER_NOT_IN_GROUP,
                f"Member {member_id} in split_with is not a member of group {group_id}.",
                422,
                field="split_with",
            )


def _replace_split(expense: Expense, split_with: list[int], session: Session) -> None:
    """
    Makes expense.splits match split_with, keeping rows of members that stay.

    Payment rows of members leaving the split are deleted with their split row.
    """
    wanted = list(dict.fromkeys(split_with))
    current = {s.member_id: s for s in expense.splits}

    for member_id, split in current.items():
        if member_id not in wanted:
            expense.splits.remove(split)

    dropped = set(current) - set(wanted)
    for payment in list(expense.payments):
        if payment.member_id in dropped:
            expense.payments.remove(payment)

    for member_id in wanted:
        if member_id not in current:
            expense.splits.append(ExpenseSplit(member_id=member_id))

    session.flush()


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def row_names(row: Expense) -> dict:
    """{member_id: name} for everyone an expense row references."""
    names = {row.paid_by_member_id: row.payer.name}
    names.update({s.member_id: s.member.name for s in row.splits})
    return names


def build_expense_dict(
        expense: engine.Expense,
        names: dict,
        group_id: int | None = None,
) -> dict:
    """
    Serialises an engine.Expense with member names, per-member paid flags and
    payment progress. `share` is the exact share rounded to cents for display.
    """
    progress = engine.payment_progress(expense)
    return {
        "id": expense.id,
        "group_id": group_id,
        "description": expense.description,
        "amount": money(expense.amount),
        "share": money(expense.share) if expense.split_with else None,
        "paid_by_member_id": expense.payer,
        "paid_by_name": names.get(expense.payer),
        "date": _iso(expense.date),
        "split_with": [
            {
                "member_id": member_id,
                "name": names.get(member_id),
                "paid": engine.is_settled(expense, member_id),
                "paid_at": _iso(
                    expense.payments[member_id].paid_at
                    if member_id in expense.payments else None
                ),
            }
            for member_id in expense.split_with
        ],
        "progress": {
            **progress,
            "percentage": money(progress["percentage"]),
        },
    }


def _serialize_row(row: Expense) -> dict:
    data = build_expense_dict(to_engine_expense(row), row_names(row), row.group_id)
    data["created_at"] = _iso(row.created_at)
    data["updated_at"] = _iso(row.updated_at)
    return data


# ── Public service functions ───────────────────────────────────────────────

def create_expense(group_id: int, data: dict, session: Session) -> dict:
    """
    Records a new expense for a group.

    Args:
        group_id: The group this expense belongs to.
        data:     Validated dict from CreateExpenseSchema.

    Returns:
        The new expense as a dict (see build_expense_dict).
    """
    get_group_or_404(group_id, session)

    member_ids = _get_active_member_ids(group_id, session)
    _validate_payer_is_member(data["paid_by_member_id"], group_id, member_ids)
    _validate_split_members(data["split_with"], group_id, member_ids)

    expense = Expense(
        group_id=group_id,
        paid_by_member_id=data["paid_by_member_id"],
        description=data["description"].strip(),
        amount=data["amount"],
    )
    if data.get("date") is not None:
        expense.date = data["date"]

    expense.splits = [ExpenseSplit(member_id=m) for m in data["split_with"]]

    session.add(expense)
    session.flush()
    session.refresh(expense)

    logger.info(
        "Expense %s created in group %s: %s split %d ways",
        expense.id, group_id, expense.amount, len(expense.splits),
    )
    return _serialize_row(expense)


def list_expenses(group_id: int, session: Session) -> list[dict]:
    """Returns all expenses of a group, newest first."""
    get_group_or_404(group_id, session)

    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .options(
            selectinload(Expense.splits).selectinload(ExpenseSplit.member),
            selectinload(Expense.payments),
            selectinload(Expense.payer),
        )
        .order_by(Expense.date.desc(), Expense.id.desc())
    )
    return [_serialize_row(row) for row in session.execute(stmt).scalars().all()]


def get_expense(expense_id: int, session: Session) -> dict:
    return _serialize_row(get_expense_or_404(expense_id, session))


def edit_expense(expense_id: int, data: dict, session: Session) -> dict:
    """
    Partially updates an expense.

    Args:
        expense_id: The expense to edit.
        data:       Validated partial dict from PatchExpenseSchema.

    The payer and split members are checked against the group's active
    members only when they are part of the PATCH body. An untouched split may
    still reference archived members.

    Returns:
        The updated expense as a dict.
    """
    expense = get_expense_or_404(expense_id, session)

    if "paid_by_member_id" in data or "split_with" in data:
        member_ids = _get_active_member_ids(expense.group_id, session)
        if "paid_by_member_id" in data:
            _validate_payer_is_member(data["paid_by_member_id"], expense.group_id, member_ids)
        if "split_with" in data:
            _validate_split_members(data["split_with"], expense.group_id, member_ids)

    if "description" in data:
        expense.description = data["description"].strip()
    if "amount" in data:
        expense.amount = data["amount"]
    if "paid_by_member_id" in data:
        expense.paid_by_member_id = data["paid_by_member_id"]
    if data.get("date") is not None:
        expense.date = data["date"]
    if "split_with" in data:
        _replace_split(expense, data["split_with"], session)

    expense.updated_at = datetime.now(timezone.utc)
    session.flush()
    session.refresh(expense)
    return _serialize_row(expense)


def delete_expense(expense_id: int, session: Session) -> None:
    """
    Permanently deletes an expense with its splits and payment flags.

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404) — expense does not exist.
    """
    expense = get_expense_or_404(expense_id, session)
    session.delete(expense)
    session.flush()
    logger.info("Expense %s deleted", expense_id)



def set_payment(
        expense_id: int,
        member_id: int,
        paid: bool,
        session: Session,
) -> dict:
    """
    Toggles one member's paid flag and returns the updated expense.

    Setting a flag to the value it already has changes nothing.
    """
    set_expense_payment_flag(expense_id, member_id, paid, session)
    return _serialize_row(get_expense_or_404(expense_id, session))
