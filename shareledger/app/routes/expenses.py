"""
routes/expenses.py — Expense route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/expenses) because this blueprint
owns BOTH the group-scoped paths (/groups/:id/expenses) and the
expense-ID paths (/expenses/:id).

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints:
  POST   /groups/:id/expenses                   → 201  create expense
  GET    /groups/:id/expenses                   → 200  list expenses, newest first
  GET    /expenses/:id                          → 200  get expense + split + flags
  PATCH  /expenses/:id                          → 200  partial update
  DELETE /expenses/:id                          → 200  delete
  PATCH  /expenses/:id/payments/:member_id      → 200  mark a share paid / unpaid
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from shareledger.app.extensions import db
from shareledger.app.schemas.expense_schema import CreateExpenseSchema, PatchExpenseSchema
from shareledger.app.schemas.payment_schema import SetPaymentSchema
from shareledger.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


# ── Group-scoped expense routes ────────────────────────────────────────────

@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["POST"])
def create_expense(group_id: int):
    """POST /groups/:id/expenses — Record a new expense shared equally by split_with."""
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    result = expense_service.create_expense(
        group_id=group_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["GET"])
def list_expenses(group_id: int):
    result = expense_service.list_expenses(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


# ── Expense-ID routes ──────────────────────────────────────────────────────

@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
def get_expense(expense_id: int):
    result = expense_service.get_expense(expense_id=expense_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["PATCH"])
def edit_expense(expense_id: int):
    """
    PATCH /expenses/:id — Partial update.
    Members removed from split_with lose their paid flag for this expense.
    """
    data = PatchExpenseSchema().load(request.get_json(force=True) or {})
    result = expense_service.edit_expense(
        expense_id=expense_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
def delete_expense(expense_id: int):
    expense_service.delete_expense(expense_id=expense_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "expense_id": expense_id,
        },
        "warnings": [],
    }), 200


@expenses_bp.route(
    "/expenses/<int:expense_id>/payments/<int:member_id>",
    methods=["PATCH"],
)
def set_payment(expense_id: int, member_id: int):
    """
    PATCH /expenses/:id/payments/:member_id — {"paid": true|false}

    Idempotent. Marking the payer's own share has no effect on balances.
    """
    data = SetPaymentSchema().load(request.get_json(force=True) or {})
    result = expense_service.set_payment(
        expense_id=expense_id,
        member_id=member_id,
        paid=data["paid"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200
