"""
services/member_service.py — Member CRUD and the per-member balance view.

Members are never hard-deleted through the API. DELETE archives the row
(archived_at = now) so historical expenses keep a valid foreign key. The
settlement engine no longer sees archived members and books any amounts
still referencing them under its "unknown member" bucket.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from shareledger.app import engine
from shareledger.app.errors import AppError, ErrorCode
from shareledger.app.models.member import Member
from shareledger.app.services import ledger_service
from shareledger.app.services.balance_service import money
from shareledger.app.services.expense_service import build_expense_dict


def _get_member_or_404(member_id: int, session: Session) -> Member:
    member = session.get(Member, member_id)
    if member is None or member.is_archived:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"Member {member_id} does not exist.",
            404,
        )
    return member


def build_member_dict(member: Member) -> dict:
    return {
        "id": member.id,
        "group_id": member.group_id,
        "name": member.name,
        "created_at": member.created_at.isoformat() if member.created_at else None,
    }


def create_member(group_id: int, name: str, session: Session) -> dict:
    ledger_service.get_group_or_404(group_id, session)

    member = Member(group_id=group_id, name=name.strip())
    session.add(member)
    session.flush()
    session.refresh(member)
    return build_member_dict(member)


def list_members(group_id: int, session: Session) -> list[dict]:
    """Active members of a group, sorted by name."""
    ledger_service.get_group_or_404(group_id, session)

    stmt = (
        select(Member)
        .where(
            Member.group_id == group_id,
            Member.archived_at.is_(None),
        )
        .order_by(Member.name.asc(), Member.id.asc())
    )
    return [build_member_dict(m) for m in session.execute(stmt).scalars().all()]


def get_member(member_id: int, session: Session) -> dict:
    return build_member_dict(_get_member_or_404(member_id, session))


def rename_member(member_id: int, name: str, session: Session) -> dict:
    member = _get_member_or_404(member_id, session)
    member.name = name.strip()
    member.updated_at = datetime.now(timezone.utc)
    session.flush()
    return build_member_dict(member)


def archive_member(member_id: int, session: Session) -> None:
    """Hides the member from the group. Expenses referencing them are kept."""
    member = _get_member_or_404(member_id, session)
    member.archived_at = datetime.now(timezone.utc)
    session.flush()


def _counterparties(entries: dict, names: dict) -> list[dict]:
    return [
        {
            "member_id": member_id,
            "name": names.get(member_id),
            "amount": money(entry["amount"]),
            "expense_ids": entry["expense_ids"],
        }
        for member_id, entry in entries.items()
    ]


def get_member_balance(
        member_id: int,
        session: Session,
        limit: int = 50,
        offset: int = 0,
) -> dict:
    """
    Builds the member detail view: totals from every expense of the group,
    plus one page of the expenses that involve the member (newest first).

    Returns:
        {
          "member": {...},
          "summary": {totals, "owes_to": [...], "owed_by": [...]},
          "expenses": [...],        (this page only)
          "total": int,             (all involved expenses)
          "has_more": bool,
        }
    """
    member = _get_member_or_404(member_id, session)
    snapshot = ledger_service.load_snapshot(member.group_id, session)
    names = ledger_service.get_member_names(member.group_id, session)

    summary = engine.member_summary(snapshot.members, snapshot.expenses, member.id)

    involved = engine.expenses_involving(snapshot.expenses, member.id)
    page = involved[offset:offset + limit]

    return {
        "member": build_member_dict(member),
        "summary": {
            "total_paid": money(summary["total_paid"]),
            "total_share": money(summary["total_share"]),
            "total_owes": money(summary["total_owes"]),
            "will_collect": money(summary["will_collect"]),
            "net_balance": money(summary["net_balance"]),
            "is_settled": summary["is_settled"],
            "owes_to": _counterparties(summary["owes_to"], names),
            "owed_by": _counterparties(summary["owed_by"], names),
        },
        "expenses": [
            build_expense_dict(e, names, member.group_id) for e in page
        ],
        "total": len(involved),
        "has_more": offset + len(page) < len(involved),
    }
