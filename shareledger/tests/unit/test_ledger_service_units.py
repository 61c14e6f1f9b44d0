"""
Unit tests for ledger_service: row conversion, snapshot loading and the
payment flag toggle.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from shareledger.app import engine
from shareledger.app.errors import AppError, ErrorCode
from shareledger.app.services import ledger_service

WHEN = datetime(2026, 4, 1, 12, 0, tzinfo=timezone.utc)


def _expense_row(payments=()) -> SimpleNamespace:
    return SimpleNamespace(
        id=7,
        amount=Decimal("60.00"),
        paid_by_member_id=1,
        splits=[SimpleNamespace(member_id=1), SimpleNamespace(member_id=2)],
        payments=list(payments),
        split_member_ids=[1, 2],
        description="Groceries",
        date=WHEN,
    )


def test_get_group_or_404_raises_when_missing():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        ledger_service.get_group_or_404(group_id=404, session=session)

    assert exc_info.value.code == ErrorCode.GROUP_NOT_FOUND
    assert exc_info.value.http_status == 404


def test_get_expense_or_404_raises_when_missing():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        ledger_service.get_expense_or_404(expense_id=5, session=session)

    assert exc_info.value.code == ErrorCode.EXPENSE_NOT_FOUND


def test_to_engine_expense_copies_split_and_payments():
    row = _expense_row(
        payments=[SimpleNamespace(member_id=2, paid=True, paid_at=WHEN)],
    )

    expense = ledger_service.to_engine_expense(row)

    assert expense.id == 7
    assert expense.payer == 1
    assert expense.split_with == (1, 2)
    assert expense.payments == {2: engine.PaymentRecord(paid=True, paid_at=WHEN)}
    assert expense.description == "Groceries"


@patch("shareledger.app.services.ledger_service.get_expense_rows")
@patch("shareledger.app.services.ledger_service.get_active_member_rows")
@patch("shareledger.app.services.ledger_service.get_group_or_404")
def test_load_snapshot_builds_engine_values(_mock_group, mock_members, mock_expenses):
    mock_members.return_value = [
        SimpleNamespace(id=1, name="Ann"),
        SimpleNamespace(id=2, name="Ben"),
    ]
    mock_expenses.return_value = [_expense_row()]

    snapshot = ledger_service.load_snapshot(group_id=3, session=MagicMock())

    assert snapshot.members == (engine.Member(1, "Ann"), engine.Member(2, "Ben"))
    assert [e.id for e in snapshot.expenses] == [7]


# ── Payment flag ───────────────────────────────────────────────────────────

@patch("shareledger.app.services.ledger_service.get_expense_or_404")
def test_set_flag_rejects_member_outside_split(mock_get_expense):
    mock_get_expense.return_value = _expense_row()

    with pytest.raises(AppError) as exc_info:
        ledger_service.set_expense_payment_flag(7, 9, True, MagicMock())

    err = exc_info.value
    assert err.code == ErrorCode.MEMBER_NOT_IN_SPLIT
    assert err.http_status == 422


@patch("shareledger.app.services.ledger_service._upsert_payment")
@patch("shareledger.app.services.ledger_service.get_expense_or_404")
def test_set_flag_writes_new_state(mock_get_expense, mock_upsert):
    session = MagicMock()
    row = _expense_row()
    mock_get_expense.return_value = row

    ledger_service.set_expense_payment_flag(7, 2, True, session, when=WHEN)

    mock_upsert.assert_called_once_with(
        session, 7, 2, engine.PaymentRecord(paid=True, paid_at=WHEN),
    )
    session.expire.assert_called_once_with(row, ["payments"])


@patch("shareledger.app.services.ledger_service._upsert_payment")
@patch("shareledger.app.services.ledger_service.get_expense_or_404")
def test_set_flag_same_state_is_noop(mock_get_expense, mock_upsert):
    session = MagicMock()
    mock_get_expense.return_value = _expense_row(
        payments=[SimpleNamespace(member_id=2, paid=True, paid_at=WHEN)],
    )

    result = ledger_service.set_expense_payment_flag(7, 2, True, session)

    mock_upsert.assert_not_called()
    session.expire.assert_not_called()
    assert result.payments[2].paid_at == WHEN


@patch("shareledger.app.services.ledger_service._upsert_payment")
@patch("shareledger.app.services.ledger_service.get_expense_or_404")
def test_unmarking_never_paid_share_is_noop(mock_get_expense, mock_upsert):
    mock_get_expense.return_value = _expense_row()

    ledger_service.set_expense_payment_flag(7, 2, False, MagicMock())

    mock_upsert.assert_not_called()
