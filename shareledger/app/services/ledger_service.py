"""
services/ledger_service.py — Storage collaborator for the settlement engine.

This is the only bridge between SQLAlchemy rows and the engine's value types
(app/engine/snapshot.py). Every ledger view builds a fresh snapshot per
request; nothing derived is cached or persisted.

Contract offered to the rest of the app:
  list_members(group_id, session)     -> [engine.Member]    active members only
  list_expenses(group_id, session)    -> [engine.Expense]   ids fully resolved
  load_snapshot(group_id, session)    -> engine.LedgerSnapshot
  get_member_names(group_id, session)  -> {member_id: name}   archived included
  set_expense_payment_flag(expense_id, member_id, paid, session) -> engine.Expense

Atomicity of the payment toggle:
  Each member's flag is its own expense_payments row. The toggle is a single
  INSERT ... ON CONFLICT DO UPDATE on (expense_id, member_id), so two
  concurrent toggles for different members of the same expense touch
  different rows and cannot lose each other's update.

Layer rules:
  - No Flask imports. Receives a SQLAlchemy Session as an argument.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, case, select, true
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, selectinload

from shareledger.app import engine
from shareledger.app.errors import AppError, ErrorCode
from shareledger.app.models.expense import Expense
from shareledger.app.models.group import Group
from shareledger.app.models.member import Member
from shareledger.app.models.payment import ExpensePayment

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


# ── Row lookups ────────────────────────────────────────────────────────────

def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def get_expense_or_404(expense_id: int, session: Session) -> Expense:
    """Returns the Expense row or raises EXPENSE_NOT_FOUND (404)."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
            404,
        )
    return expense


def get_active_member_rows(group_id: int, session: Session) -> list[Member]:
    """Active (non-archived) member rows of a group, in creation order."""
    stmt = (
        select(Member)
        .where(
            Member.group_id == group_id,
            Member.archived_at.is_(None),
        )
        .order_by(Member.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_member_names(group_id: int, session: Session) -> dict:
    """{member_id: name} for every member of the group, archived ones included."""
    stmt = select(Member.id, Member.name).where(Member.group_id == group_id)
    return dict(session.execute(stmt).all())


def get_expense_rows(group_id: int, session: Session) -> list[Expense]:
    """All expense rows of a group with splits and payments eagerly loaded."""
    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .options(
            selectinload(Expense.splits),
            selectinload(Expense.payments),
        )
        .order_by(Expense.date.asc(), Expense.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


# ── Row → engine value conversion ──────────────────────────────────────────

def to_engine_member(row: Member) -> engine.Member:
    return engine.Member(id=row.id, name=row.name)


def to_engine_expense(row: Expense) -> engine.Expense:
    """Converts an Expense row (with splits and payments) to an engine.Expense."""
    return engine.Expense(
        id=row.id,
        amount=row.amount,
        payer=row.paid_by_member_id,
        split_with=tuple(s.member_id for s in row.splits),
        payments={
            p.member_id: engine.PaymentRecord(paid=p.paid, paid_at=p.paid_at)
            for p in row.payments
        },
        description=row.description,
        date=row.date,
    )


# ── Public collaborator functions ──────────────────────────────────────────

def list_members(group_id: int, session: Session) -> list[engine.Member]:
    return [to_engine_member(m) for m in get_active_member_rows(group_id, session)]


def list_expenses(group_id: int, session: Session) -> list[engine.Expense]:
    return [to_engine_expense(e) for e in get_expense_rows(group_id, session)]


def load_snapshot(group_id: int, session: Session) -> engine.LedgerSnapshot:
    """
    Reads the group's members and expenses into one immutable snapshot.

    Raises:
        AppError(GROUP_NOT_FOUND, 404) -- group does not exist.
    """
    get_group_or_404(group_id, session)
    return engine.LedgerSnapshot(
        members=tuple(list_members(group_id, session)),
        expenses=tuple(list_expenses(group_id, session)),
    )


def _upsert_payment(
        session: Session,
        expense_id: int,
        member_id: int,
        record: engine.PaymentRecord,
) -> None:
    """
    Writes one member's flag as a single statement.

    An already-paid row keeps its original paid_at when marked paid again.
    """
    dialect = session.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)

    if insert is None:
        # No native upsert: lock-and-write the single row instead.
        payment = session.execute(
            select(ExpensePayment)
            .where(
                ExpensePayment.expense_id == expense_id,
                ExpensePayment.member_id == member_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if payment is None:
            session.add(ExpensePayment(
                expense_id=expense_id,
                member_id=member_id,
                paid=record.paid,
                paid_at=record.paid_at,
            ))
        elif not (payment.paid and record.paid):
            payment.paid = record.paid
            payment.paid_at = record.paid_at
        session.flush()
        return

    stmt = insert(ExpensePayment).values(
        expense_id=expense_id,
        member_id=member_id,
        paid=record.paid,
        paid_at=record.paid_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["expense_id", "member_id"],
        set_={
            "paid": stmt.excluded.paid,
            "paid_at": case(
                (
                    and_(ExpensePayment.paid == true(), stmt.excluded.paid == true()),
                    ExpensePayment.paid_at,
                ),
                else_=stmt.excluded.paid_at,
            ),
        },
    )
    session.execute(stmt)


def set_expense_payment_flag(
        expense_id: int,
        member_id: int,
        paid: bool,
        session: Session,
        when: datetime | None = None,
) -> engine.Expense:
    """
    Marks (or un-marks) member_id's share of an expense as paid.

    The new state is decided by the engine's payment overlay (set_paid) and
    only written when it differs from the stored one, so re-applying the same
    flag is a no-op.

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404)    -- expense does not exist.
        AppError(MEMBER_NOT_IN_SPLIT, 422)  -- member does not share this expense.

    Returns the expense as re-read from storage after the write.
    """
    row = get_expense_or_404(expense_id, session)

    if member_id not in row.split_member_ids:
        raise AppError(
            ErrorCode.MEMBER_NOT_IN_SPLIT,
            f"Member {member_id} is not part of the split for expense {expense_id}.",
            422,
            field="member_id",
        )

    current = to_engine_expense(row)
    updated = engine.set_paid(
        current,
        member_id,
        paid,
        when or datetime.now(timezone.utc),
    )

    if updated is not current:
        _upsert_payment(session, expense_id, member_id, updated.payments[member_id])
        session.flush()
        logger.info(
            "Expense %s: member %s marked %s",
            expense_id, member_id, "paid" if paid else "unpaid",
        )
        # The upsert bypasses the identity map; reload the payments collection.
        session.expire(row, ["payments"])

    return to_engine_expense(row)
