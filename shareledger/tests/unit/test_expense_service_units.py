"""
Unit tests for expense_service helper and service paths.

DB-free: sessions are MagicMocks and rows are SimpleNamespaces.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from shareledger.app import engine
from shareledger.app.errors import AppError, ErrorCode
from shareledger.app.services import expense_service


def _mock_scalars_all(session: MagicMock, rows: list) -> None:
    session.execute.return_value.scalars.return_value.all.return_value = rows


# ── Membership checks ──────────────────────────────────────────────────────

def test_get_active_member_ids_returns_set():
    session = MagicMock()
    _mock_scalars_all(session, [1, 2, 2])

    assert expense_service._get_active_member_ids(group_id=1, session=session) == {1, 2}


def test_validate_payer_is_member_rejects_outsider():
    with pytest.raises(AppError) as exc_info:
        expense_service._validate_payer_is_member(9, group_id=1, member_ids={1, 2})

    err = exc_info.value
    assert err.code == ErrorCode.PAYER_NOT_IN_GROUP
    assert err.http_status == 422
    assert err.field == "paid_by_member_id"


def test_validate_payer_is_member_accepts_member():
    expense_service._validate_payer_is_member(2, group_id=1, member_ids={1, 2})


def test_validate_split_members_rejects_first_outsider():
    with pytest.raises(AppError) as exc_info:
        expense_service._validate_split_members([1, 7, 8], group_id=1, member_ids={1, 2})

    err = exc_info.value
    assert err.code == ErrorCode.SPLIT_MEMBER_NOT_IN_GROUP
    assert err.field == "split_with"
    assert "7" in err.message


# ── Split replacement ──────────────────────────────────────────────────────

def test_replace_split_drops_rows_and_payments_of_removed_members():
    session = MagicMock()
    keep = SimpleNamespace(member_id=1)
    drop = SimpleNamespace(member_id=2)
    paid_keep = SimpleNamespace(member_id=1)
    paid_drop = SimpleNamespace(member_id=2)
    expense = SimpleNamespace(splits=[keep, drop], payments=[paid_keep, paid_drop])

    expense_service._replace_split(expense, [1, 3], session)

    assert [s.member_id for s in expense.splits] == [1, 3]
    assert expense.splits[0] is keep
    assert expense.payments == [paid_keep]
    session.flush.assert_called_once()


# ── Serialisation ──────────────────────────────────────────────────────────

def test_build_expense_dict_reports_share_flags_and_progress():
    paid_at = datetime(2026, 3, 1, tzinfo=timezone.utc)
    expense = engine.Expense(
        id=5,
        amount=Decimal("100.00"),
        payer=1,
        split_with=(1, 2, 3),
        payments={2: engine.PaymentRecord(paid=True, paid_at=paid_at)},
        description="Dinner",
        date=datetime(2026, 2, 28, tzinfo=timezone.utc),
    )
    names = {1: "Ann", 2: "Ben", 3: "Cy"}

    result = expense_service.build_expense_dict(expense, names, group_id=4)

    assert result["group_id"] == 4
    assert result["amount"] == Decimal("100.00")
    assert result["share"] == Decimal("33.33")
    assert result["paid_by_name"] == "Ann"
    assert [(s["member_id"], s["paid"]) for s in result["split_with"]] == [
        (1, True),
        (2, True),
        (3, False),
    ]
    assert result["split_with"][1]["paid_at"] == paid_at.isoformat()
    assert result["split_with"][2]["paid_at"] is None
    assert result["progress"]["paid_count"] == 2
    assert result["progress"]["total_count"] == 3
    assert result["progress"]["percentage"] == Decimal("66.67")
    assert result["progress"]["status"] == "partial"


def test_build_expense_dict_empty_split_has_no_share():
    expense = engine.Expense(id=5, amount=Decimal("10"), payer=1)

    result = expense_service.build_expense_dict(expense, {1: "Ann"})

    assert result["share"] is None
    assert result["split_with"] == []
    assert result["progress"]["status"] == "unpaid"


# ── Service functions ──────────────────────────────────────────────────────

@patch("shareledger.app.services.expense_service._get_active_member_ids", return_value={1, 2})
@patch("shareledger.app.services.expense_service.get_group_or_404")
def test_create_expense_rejects_payer_outside_group(_mock_group, _mock_ids):
    session = MagicMock()
    data = {
        "paid_by_member_id": 9,
        "description": "Taxi",
        "amount": Decimal("20.00"),
        "split_with": [1, 2],
    }

    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(group_id=1, data=data, session=session)

    assert exc_info.value.code == ErrorCode.PAYER_NOT_IN_GROUP
    session.add.assert_not_called()


@patch("shareledger.app.services.expense_service._get_active_member_ids", return_value={1, 2})
@patch("shareledger.app.services.expense_service.get_group_or_404")
def test_create_expense_rejects_split_member_outside_group(_mock_group, _mock_ids):
    session = MagicMock()
    data = {
        "paid_by_member_id": 1,
        "description": "Taxi",
        "amount": Decimal("20.00"),
        "split_with": [1, 5],
    }

    with pytest.raises(AppError) as exc_info:
        expense_service.create_expense(group_id=1, data=data, session=session)

    assert exc_info.value.code == ErrorCode.SPLIT_MEMBER_NOT_IN_GROUP
    session.add.assert_not_called()


@patch("shareledger.app.services.expense_service.get_expense_or_404")
def test_edit_expense_checks_new_payer(mock_get_expense):
    session = MagicMock()
    mock_get_expense.return_value = SimpleNamespace(id=3, group_id=1)
    _mock_scalars_all(session, [1, 2])

    with pytest.raises(AppError) as exc_info:
        expense_service.edit_expense(
            expense_id=3,
            data={"paid_by_member_id": 8},
            session=session,
        )

    assert exc_info.value.code == ErrorCode.PAYER_NOT_IN_GROUP


@patch("shareledger.app.services.expense_service.get_expense_or_404")
def test_delete_expense_hard_deletes(mock_get_expense):
    session = MagicMock()
    row = SimpleNamespace(id=3)
    mock_get_expense.return_value = row

    expense_service.delete_expense(expense_id=3, session=session)

    session.delete.assert_called_once_with(row)
    session.flush.assert_called_once()


@patch("shareledger.app.services.expense_service._serialize_row", return_value={"id": 3})
@patch("shareledger.app.services.expense_service.get_expense_or_404")
@patch("shareledger.app.services.expense_service.set_expense_payment_flag")
def test_set_payment_delegates_to_ledger(mock_flag, _mock_get, _mock_serialize):
    session = MagicMock()

    result = expense_service.set_payment(expense_id=3, member_id=2, paid=True, session=session)

    mock_flag.assert_called_once_with(3, 2, True, session)
    assert result == {"id": 3}
