"""
services/balance_service.py — Ledger views over the settlement engine.

Every view here follows the same three steps:
  1. ledger_service.load_snapshot() reads members and expenses once.
  2. An engine function computes the derived numbers from that snapshot.
  3. This module attaches member names, quantizes amounts for output and
     turns engine warnings into the API's `warnings` array.

Nothing derived is stored. Balances, the debt matrix and the settlement plan
are recomputed on every request from the current expenses and payment flags.

Output rounding:
  The engine divides exactly. Amounts leave this module quantized to 0.01
  (ROUND_HALF_UP); zero-sum is checked on the exact values before rounding.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives group_id (int) and session (SQLAlchemy Session) as arguments.
  - Returns plain Python dicts and lists.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.orm import Session

from shareledger.app import engine
from shareledger.app.engine.balances import balance_sum
from shareledger.app.engine.debt_matrix import total_owed_by, total_owed_to
from shareledger.app.errors import AppError, ErrorCode, WarningCode
from shareledger.app.models.member import Member
from shareledger.app.services import ledger_service

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
UNKNOWN_MEMBER_NAME = "Unknown member"

# Exact division leaves at most a few ulps per expense; anything larger
# means the stored data is inconsistent.
_ZERO_SUM_TOLERANCE = Decimal("0.000001")


# ── Formatting helpers ─────────────────────────────────────────────────────

def money(value: Decimal) -> Decimal:
    """Quantizes an exact engine amount to cents for output."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _name_map(snapshot: engine.LedgerSnapshot) -> dict:
    names = {m.id: m.name for m in snapshot.members}
    names[engine.UNKNOWN_MEMBER] = UNKNOWN_MEMBER_NAME
    return names


def _member_ref(member_id, names: dict) -> dict:
    """{"member_id", "name"}; the unknown bucket is reported with a null id."""
    return {
        "member_id": None if member_id == engine.UNKNOWN_MEMBER else member_id,
        "name": names.get(member_id, UNKNOWN_MEMBER_NAME),
    }


def _serialize_transaction(txn: engine.SettlementTransaction, names: dict) -> dict:
    sender = _member_ref(txn.from_member, names)
    receiver = _member_ref(txn.to_member, names)
    return {
        "from_member_id": sender["member_id"],
        "from_name": sender["name"],
        "to_member_id": receiver["member_id"],
        "to_name": receiver["name"],
        "amount": money(txn.amount),
    }


def _warnings(snapshot: engine.LedgerSnapshot) -> list[dict]:
    return [
        w.to_dict()
        for w in engine.collect_warnings(snapshot.members, snapshot.expenses)
    ]


def _check_zero_sum(group_id: int, balances: dict) -> Decimal:
    """
    Returns the exact balance sum, or raises INTERNAL_ERROR (500) when it is
    not zero within tolerance.
    """
    total = balance_sum(balances)
    if abs(total) > _ZERO_SUM_TOLERANCE:
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Balance integrity check failed: sum was {total} (expected 0). "
            f"Group {group_id} has inconsistent financial data.",
            500,
        )
    return total


# ── Public service functions ───────────────────────────────────────────────

def get_balance_response(
        group_id: int,
        session: Session,
        include_paid: bool = False,
        epsilon: Decimal = engine.EPSILON,
) -> tuple[dict, list[dict]]:
    """
    Builds the payload for GET /groups/:id/balances.

    Args:
        include_paid: When True, payment flags are ignored and the gross
                      position from all expenses is shown. The default shows
                      what is still outstanding.
        epsilon:      Classification tolerance (SETTLEMENT_EPSILON).

    Returns:
        (payload, warnings)

    Raises:
        AppError(GROUP_NOT_FOUND, 404) -- group does not exist.
        AppError(INTERNAL_ERROR, 500)  -- balances do not sum to zero.
    """
    snapshot = ledger_service.load_snapshot(group_id, session)
    names = _name_map(snapshot)

    balances = engine.compute_balances(
        snapshot.members,
        snapshot.expenses,
        honor_payments=not include_paid,
    )
    total = _check_zero_sum(group_id, balances)
    plan = engine.simplify(balances, epsilon)

    balance_list = []
    for member_id, balance in balances.items():
        entry = _member_ref(member_id, names)
        entry["balance"] = money(balance)
        entry["status"] = engine.classify_balance(balance, epsilon)
        balance_list.append(entry)

    payload = {
        "group_id": group_id,
        "include_paid": include_paid,
        "balances": balance_list,
        "settlement_plan": [_serialize_transaction(t, names) for t in plan],
        "balance_sum": money(total),
    }
    return payload, _warnings(snapshot)


def get_debt_matrix(
        group_id: int,
        session: Session,
        include_paid: bool = False,
        epsilon: Decimal = engine.EPSILON,
) -> tuple[dict, list[dict]]:
    """
    Builds the payload for GET /groups/:id/debts.

    `rows` is the full matrix, one row per member (debtor) with one cell per
    other member (creditor). Each cell also carries the netted status of the
    pair as seen by the row member ("owes", "receivable" or "settled").
    `net` is the per-pair netted view; only pairs that are not settled
    appear there.
    """
    snapshot = ledger_service.load_snapshot(group_id, session)
    names = _name_map(snapshot)

    matrix = engine.compute_debt_matrix(
        snapshot.members,
        snapshot.expenses,
        honor_payments=not include_paid,
    )

    rows = []
    for debtor, cells in matrix.items():
        row = _member_ref(debtor, names)
        row["owes"] = [
            {
                **_member_ref(creditor, names),
                "amount": money(amount),
                "status": engine.classify_pair(matrix, debtor, creditor, epsilon),
            }
            for creditor, amount in cells.items()
            if creditor != debtor
        ]
        row["total_owed_by"] = money(total_owed_by(matrix, debtor))
        row["total_owed_to"] = money(total_owed_to(matrix, debtor))
        rows.append(row)

    net = []
    for pair in engine.net_pairs(matrix, epsilon):
        debtor = _member_ref(pair["from_member_id"], names)
        creditor = _member_ref(pair["to_member_id"], names)
        net.append({
            "from_member_id": debtor["member_id"],
            "from_name": debtor["name"],
            "to_member_id": creditor["member_id"],
            "to_name": creditor["name"],
            "amount": money(pair["amount"]),
        })

    return {"group_id": group_id, "rows": rows, "net": net}, _warnings(snapshot)


def get_settlement_plan(
        group_id: int,
        session: Session,
        epsilon: Decimal = engine.EPSILON,
) -> tuple[dict, list[dict]]:
    """
    The minimal list of transfers that settles every outstanding balance.

    At most (number of members with a non-settled balance - 1) transfers.
    """
    snapshot = ledger_service.load_snapshot(group_id, session)
    names = _name_map(snapshot)

    balances = engine.compute_balances(snapshot.members, snapshot.expenses)
    _check_zero_sum(group_id, balances)
    plan = engine.simplify(balances, epsilon)

    payload = {
        "group_id": group_id,
        "transactions": [_serialize_transaction(t, names) for t in plan],
        "transaction_count": len(plan),
        "is_settled": not plan,
    }
    return payload, _warnings(snapshot)


def get_payment_progress(group_id: int, session: Session) -> dict:
    """Per-expense payment progress (newest first) plus group statistics."""
    snapshot = ledger_service.load_snapshot(group_id, session)

    stats = engine.payment_statistics(snapshot.expenses)
    expenses = []
    for expense in reversed(snapshot.expenses):
        progress = engine.payment_progress(expense)
        expenses.append({
            "expense_id": expense.id,
            "description": expense.description,
            "amount": money(expense.amount),
            "paid_count": progress["paid_count"],
            "total_count": progress["total_count"],
            "percentage": money(progress["percentage"]),
            "status": progress["status"],
        })

    return {
        "group_id": group_id,
        "statistics": {
            **stats,
            "total_amount": money(stats["total_amount"]),
            "paid_amount": money(stats["paid_amount"]),
            "percentage_paid": money(stats["percentage_paid"]),
        },
        "expenses": expenses,
    }


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def get_paid_shares(group_id: int, session: Session, filters: dict | None = None) -> dict:
    """
    Builds the payload for GET /groups/:id/payments, the archive of settled
    shares.

    `filters` is the loaded PaymentArchiveSchema: member_id, payer_id,
    start, end, q and sort. Names are resolved for archived members too, so
    old entries keep their labels. A listed share goes away again when it is
    marked unpaid through PATCH /expenses/:id/payments/:member_id.
    """
    filters = filters or {}
    snapshot = ledger_service.load_snapshot(group_id, session)
    names = ledger_service.get_member_names(group_id, session)

    shares = engine.paid_shares(
        snapshot.expenses,
        member_id=filters.get("member_id"),
        payer_id=filters.get("payer_id"),
        start=filters.get("start"),
        end=filters.get("end"),
        search=filters.get("q"),
        names=names,
        sort=filters.get("sort") or engine.SORT_DATE_DESC,
    )
    totals = engine.paid_share_totals(shares, snapshot.members)

    payments = [
        {
            "expense_id": share["expense_id"],
            "description": share["description"],
            "expense_amount": money(share["expense_amount"]),
            "share": money(share["share"]),
            "split_count": share["split_count"],
            "payer_id": share["payer_id"],
            "payer_name": names.get(share["payer_id"], UNKNOWN_MEMBER_NAME),
            "member_id": share["member_id"],
            "member_name": names.get(share["member_id"], UNKNOWN_MEMBER_NAME),
            "paid_at": _iso(share["paid_at"]),
            "expense_date": _iso(share["expense_date"]),
        }
        for share in shares
    ]

    by_member = [
        {
            "member_id": member.id,
            "name": member.name,
            "count": totals["by_member"][member.id]["count"],
            "amount": money(totals["by_member"][member.id]["amount"]),
        }
        for member in snapshot.members
    ]

    return {
        "group_id": group_id,
        "payments": payments,
        "statistics": {
            "total_transactions": totals["total_count"],
            "total_amount": money(totals["total_amount"]),
            "by_member": by_member,
        },
    }


def _get_group_member_or_404(group_id: int, member_id: int, session: Session) -> Member:
    member = session.get(Member, member_id)
    if member is None or member.group_id != group_id or member.is_archived:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"Member {member_id} is not a member of group {group_id}.",
            404,
        )
    return member


def record_member_payment(
        group_id: int,
        debtor_id: int,
        data: dict,
        session: Session,
) -> tuple[dict, list[dict]]:
    """
    Applies a lump payment from debtor_id to data["to_member_id"].

    The amount is spread over the debtor's outstanding shares owed to that
    member, oldest expense first, whole shares only. Each covered share is
    flagged paid through ledger_service.set_expense_payment_flag(). When
    "amount" is omitted every outstanding share to that member is paid.

    Returns:
        (payload, warnings). A PAYMENT_NOT_ALLOCATED warning reports any
        part of the amount that matched no whole share.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)  -- group does not exist.
        AppError(MEMBER_NOT_FOUND, 404) -- either member is not in the group.
        AppError(SELF_PAYMENT, 422)     -- debtor and creditor are the same.
    """
    creditor_id = data["to_member_id"]

    ledger_service.get_group_or_404(group_id, session)
    _get_group_member_or_404(group_id, debtor_id, session)
    _get_group_member_or_404(group_id, creditor_id, session)

    if debtor_id == creditor_id:
        raise AppError(
            ErrorCode.SELF_PAYMENT,
            "A member cannot pay themselves.",
            422,
            field="to_member_id",
        )

    snapshot = ledger_service.load_snapshot(group_id, session)
    summary = engine.member_summary(snapshot.members, snapshot.expenses, debtor_id)
    outstanding = summary["owes_to"].get(creditor_id, {}).get("amount", Decimal("0"))

    amount = data.get("amount")
    if amount is None:
        amount = outstanding

    expense_ids, remainder = engine.allocate_payment(
        snapshot.expenses, debtor_id, creditor_id, amount,
    )
    allocated = Decimal(amount) - remainder

    for expense_id in expense_ids:
        ledger_service.set_expense_payment_flag(expense_id, debtor_id, True, session)

    logger.info(
        "Group %s: member %s paid %s to member %s (%d share(s), %s unallocated)",
        group_id, debtor_id, amount, creditor_id, len(expense_ids), remainder,
    )

    warnings = []
    if money(remainder) > 0:
        warnings.append({
            "code": WarningCode.PAYMENT_NOT_ALLOCATED,
            "message": (
                f"{money(remainder)} of the payment did not cover a whole "
                f"outstanding share and was not applied."
            ),
        })

    payload = {
        "group_id": group_id,
        "from_member_id": debtor_id,
        "to_member_id": creditor_id,
        "amount": money(amount),
        "allocated_amount": money(allocated),
        "unallocated_amount": money(remainder),
        "paid_expense_ids": expense_ids,
        "remaining_owed": money(max(outstanding - allocated, Decimal("0"))),
    }
    return payload, warnings
