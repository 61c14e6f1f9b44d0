"""
engine/summary.py — Per-member and per-expense views built on the overlay.

  member_summary()      — what one member paid, their gross share, and the
                          outstanding amounts they owe / are owed per
                          counterparty.
  payment_progress()    — how many split members of one expense have settled.
  payment_statistics()  — group-wide roll-up of payment_progress().
  allocate_payment()    — turns a lump payment from one member to another into
                          a list of whole shares to mark paid, oldest first.
  paid_shares()         — the archive of settled shares, filtered and sorted.
  paid_share_totals()   — count and amount of an archive listing per member.

Like the rest of the engine these are pure functions over a snapshot.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from shareledger.app.engine.payment_status import (
    is_outstanding,
    is_settled,
    outstanding_members,
)
from shareledger.app.engine.snapshot import (
    EPSILON,
    ZERO,
    Expense,
    Member,
    MemberId,
)
from shareledger.app.engine.validation import valid_expenses

HUNDRED = Decimal("100")

STATUS_PAID    = "paid"
STATUS_PARTIAL = "partial"
STATUS_UNPAID  = "unpaid"


def _involves(expense: Expense, member_id: MemberId) -> bool:
    return expense.payer == member_id or member_id in expense.split_with


def expenses_involving(
        expenses: Iterable[Expense],
        member_id: MemberId,
) -> list[Expense]:
    """Expenses the member paid for or shares in, newest first (undated last)."""
    involved = [e for e in expenses if _involves(e, member_id)]
    return sorted(
        involved,
        key=lambda e: (e.date is not None, e.date or datetime.min),
        reverse=True,
    )


def member_summary(
        members: Sequence[Member],
        expenses: Iterable[Expense],
        member_id: MemberId,
) -> dict:
    """
    Summarises one member's position.

    total_paid / total_share are gross (payment flags ignored). owes_to and
    owed_by only count outstanding shares and are keyed by counterparty id:
        {counterparty_id: {"amount": Decimal, "expense_ids": [...]}}
    net_balance = sum(owed_by) - sum(owes_to).
    """
    total_paid = ZERO
    total_share = ZERO
    owes_to: dict[MemberId, dict] = {}
    owed_by: dict[MemberId, dict] = {}

    for expense in valid_expenses(members, expenses):
        share = expense.share

        if expense.payer == member_id:
            total_paid += Decimal(expense.amount)
            for other in expense.split_with:
                if other == member_id or not is_outstanding(expense, other):
                    continue
                entry = owed_by.setdefault(other, {"amount": ZERO, "expense_ids": []})
                entry["amount"] += share
                entry["expense_ids"].append(expense.id)

        if member_id in expense.split_with:
            total_share += share
            if expense.payer != member_id and is_outstanding(expense, member_id):
                entry = owes_to.setdefault(
                    expense.payer, {"amount": ZERO, "expense_ids": []}
                )
                entry["amount"] += share
                entry["expense_ids"].append(expense.id)

    total_owes = sum((e["amount"] for e in owes_to.values()), ZERO)
    will_collect = sum((e["amount"] for e in owed_by.values()), ZERO)
    net_balance = will_collect - total_owes

    return {
        "member_id": member_id,
        "total_paid": total_paid,
        "total_share": total_share,
        "total_owes": total_owes,
        "will_collect": will_collect,
        "net_balance": net_balance,
        "is_settled": abs(net_balance) <= EPSILON,
        "owes_to": owes_to,
        "owed_by": owed_by,
    }


def payment_progress(expense: Expense) -> dict:
    """
    Settled split members over total split members for one expense.

    The payer counts as settled when they are part of the split. An expense
    with no split members reports 0 of 0 and is treated as unpaid.
    """
    total = len(expense.split_with)
    if total == 0:
        return {
            "paid_count": 0,
            "total_count": 0,
            "percentage": ZERO,
            "status": STATUS_UNPAID,
        }

    paid = total - len(outstanding_members(expense))
    if paid == total:
        status = STATUS_PAID
    elif paid > 0:
        status = STATUS_PARTIAL
    else:
        status = STATUS_UNPAID

    return {
        "paid_count": paid,
        "total_count": total,
        "percentage": Decimal(paid) * HUNDRED / total,
        "status": status,
    }


def payment_statistics(expenses: Sequence[Expense]) -> dict:
    """Roll-up over all expenses: status counts and paid vs. total amount."""
    counts = {STATUS_PAID: 0, STATUS_PARTIAL: 0, STATUS_UNPAID: 0}
    total_amount = ZERO
    paid_amount = ZERO

    for expense in expenses:
        progress = payment_progress(expense)
        counts[progress["status"]] += 1
        total_amount += Decimal(expense.amount)
        if progress["total_count"]:
            paid_amount += expense.share * progress["paid_count"]

    return {
        "total_expenses": len(expenses),
        "total_amount": total_amount,
        "fully_paid": counts[STATUS_PAID],
        "partially_paid": counts[STATUS_PARTIAL],
        "unpaid": counts[STATUS_UNPAID],
        "paid_amount": paid_amount,
        "percentage_paid": (
            paid_amount * HUNDRED / total_amount if total_amount > ZERO else ZERO
        ),
    }


def allocate_payment(
        expenses: Iterable[Expense],
        debtor_id: MemberId,
        creditor_id: MemberId,
        amount: Decimal,
) -> tuple[list, Decimal]:
    """
    Chooses which of debtor_id's outstanding shares to creditor_id a lump
    payment of `amount` covers.

    Shares are taken oldest first and only whole shares are settled; a share
    larger than what is left is skipped and a later, smaller one may still
    fit. Returns (expense_ids_to_mark_paid, unallocated_remainder).
    """
    candidates = [
        e for e in expenses
        if e.payer == creditor_id
        and e.split_with
        and Decimal(e.amount) > ZERO
        and debtor_id in e.split_with
        and debtor_id != creditor_id
        and is_outstanding(e, debtor_id)
    ]
    candidates.sort(key=lambda e: (e.date is None, e.date or datetime.max))

    remaining = Decimal(amount)
    allocated = []
    for expense in candidates:
        if remaining <= ZERO:
            break
        share = expense.share
        # Tolerate the remainder of non-terminating divisions.
        if remaining + EPSILON / 2 >= share:
            allocated.append(expense.id)
            remaining -= share

    return allocated, max(remaining, ZERO)


# ── Paid-share archive ─────────────────────────────────────────────────────

SORT_DATE_DESC   = "date-desc"
SORT_DATE_ASC    = "date-asc"
SORT_AMOUNT_DESC = "amount-desc"
SORT_AMOUNT_ASC  = "amount-asc"

PAID_SHARE_SORTS = (SORT_DATE_DESC, SORT_DATE_ASC, SORT_AMOUNT_DESC, SORT_AMOUNT_ASC)


def _paid_on(expense: Expense, member_id: MemberId) -> datetime | None:
    """When the share was marked paid; the expense date if no timestamp was kept."""
    record = expense.payments.get(member_id)
    return (record.paid_at if record is not None else None) or expense.date


def _matches(text: str, query: str) -> bool:
    return query in (text or "").lower()


def paid_shares(
        expenses: Iterable[Expense],
        member_id: MemberId | None = None,
        payer_id: MemberId | None = None,
        start: date | None = None,
        end: date | None = None,
        search: str | None = None,
        names: Mapping[MemberId, str] | None = None,
        sort: str = SORT_DATE_DESC,
) -> list[dict]:
    """
    Lists every settled (expense, split member) share. The payer's own share
    is never listed since nobody paid it back.

    Filters:
        member_id  -- only shares paid by this split member.
        payer_id   -- only shares owed to this payer.
        start/end  -- inclusive bounds on the day the share was paid.
        search     -- case-insensitive match on the description, payer name
                      or member name (names looked up in `names`).

    `sort` is one of PAID_SHARE_SORTS. Undated entries sort as oldest.
    Invalid expenses (empty split, non-positive amount) contribute nothing.
    """
    if sort not in PAID_SHARE_SORTS:
        raise ValueError(f"unknown sort {sort!r}")

    names = names or {}
    query = (search or "").strip().lower()
    shares = []

    for expense in expenses:
        if not expense.split_with or Decimal(expense.amount) <= ZERO:
            continue
        if payer_id is not None and expense.payer != payer_id:
            continue

        for debtor in expense.split_with:
            if debtor == expense.payer or not is_settled(expense, debtor):
                continue
            if member_id is not None and debtor != member_id:
                continue

            paid_on = _paid_on(expense, debtor)
            if start is not None and (paid_on is None or paid_on.date() < start):
                continue
            if end is not None and (paid_on is None or paid_on.date() > end):
                continue
            if query and not (
                _matches(expense.description, query)
                or _matches(names.get(expense.payer), query)
                or _matches(names.get(debtor), query)
            ):
                continue

            shares.append({
                "expense_id": expense.id,
                "description": expense.description,
                "expense_amount": Decimal(expense.amount),
                "share": expense.share,
                "split_count": len(expense.split_with),
                "payer_id": expense.payer,
                "member_id": debtor,
                "paid_at": paid_on,
                "expense_date": expense.date,
            })

    if sort in (SORT_AMOUNT_DESC, SORT_AMOUNT_ASC):
        shares.sort(key=lambda s: s["share"], reverse=sort == SORT_AMOUNT_DESC)
    else:
        shares.sort(
            key=lambda s: (s["paid_at"] is not None, s["paid_at"] or datetime.min),
            reverse=sort == SORT_DATE_DESC,
        )
    return shares


def paid_share_totals(shares: Sequence[dict], members: Sequence[Member]) -> dict:
    """
    Count and amount of the listed shares, overall and per paying member.

    Every member appears in `by_member`, in member-list order, even with
    nothing paid. Shares paid by ids outside `members` only count overall.
    """
    by_member = {m.id: {"count": 0, "amount": ZERO} for m in members}
    total = ZERO
    for share in shares:
        total += share["share"]
        entry = by_member.get(share["member_id"])
        if entry is not None:
            entry["count"] += 1
            entry["amount"] += share["share"]

    return {
        "total_count": len(shares),
        "total_amount": total,
        "by_member": by_member,
    }
