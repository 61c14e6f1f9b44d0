"""
routes/balances.py — Ledger view route handlers.

Layer rules:
  - Parse query params, call ONE service, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - Engine warnings (skipped expenses, unknown members) travel in the
    envelope's `warnings` array; they never turn a 200 into an error.

Endpoints (url_prefix=/api/v1):
  GET  /groups/:id/balances?include_paid=     → 200  balances + settlement plan
  GET  /groups/:id/debts?include_paid=        → 200  debt matrix + net pairs
  GET  /groups/:id/settlement-plan            → 200  minimal transfers
  GET  /groups/:id/payment-progress           → 200  per-expense progress + stats
  GET  /groups/:id/payments?member_id=&payer_id=&from=&to=&q=&sort=
                                              → 200  archive of paid shares
  POST /groups/:id/members/:member_id/pay     → 200  lump payment to one member
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from shareledger.app.errors import AppError, ErrorCode
from shareledger.app.extensions import db
from shareledger.app.schemas.payment_schema import PayMemberSchema, PaymentArchiveSchema
from shareledger.app.services import balance_service

balances_bp = Blueprint("balances", __name__)

_TRUE_VALUES = {"1", "true", "yes"}
_FALSE_VALUES = {"0", "false", "no", ""}


def _include_paid_param() -> bool:
    raw = request.args.get("include_paid", "false").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise AppError(
        ErrorCode.INVALID_FIELD,
        f"'{raw}' is not a valid value for include_paid. Use true or false.",
        400,
        field="include_paid",
    )


@balances_bp.route("/groups/<int:group_id>/balances", methods=["GET"])
def get_balances(group_id: int):
    """
    GET /groups/:id/balances

    Optional query param:
      ?include_paid=true  Ignore payment flags and show the gross position.
                          By default paid shares are left out.

    The service checks that balances sum to zero and raises INTERNAL_ERROR
    (500) if they do not.
    """
    result, warnings = balance_service.get_balance_response(
        group_id=group_id,
        session=db.session,
        include_paid=_include_paid_param(),
        epsilon=current_app.config["SETTLEMENT_EPSILON"],
    )
    return jsonify({"data": result, "warnings": warnings}), 200


@balances_bp.route("/groups/<int:group_id>/debts", methods=["GET"])
def get_debts(group_id: int):
    result, warnings = balance_service.get_debt_matrix(
        group_id=group_id,
        session=db.session,
        include_paid=_include_paid_param(),
        epsilon=current_app.config["SETTLEMENT_EPSILON"],
    )
    return jsonify({"data": result, "warnings": warnings}), 200


@balances_bp.route("/groups/<int:group_id>/settlement-plan", methods=["GET"])
def get_settlement_plan(group_id: int):
    result, warnings = balance_service.get_settlement_plan(
        group_id=group_id,
        session=db.session,
        epsilon=current_app.config["SETTLEMENT_EPSILON"],
    )
    return jsonify({"data": result, "warnings": warnings}), 200


@balances_bp.route("/groups/<int:group_id>/payment-progress", methods=["GET"])
def get_payment_progress(group_id: int):
    result = balance_service.get_payment_progress(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@balances_bp.route("/groups/<int:group_id>/payments", methods=["GET"])
def get_payments(group_id: int):
    """
    GET /groups/:id/payments

    Every share that has been marked paid, with per-member totals.

    Optional query params:
      ?member_id=   only shares paid by this member
      ?payer_id=    only shares owed to this payer
      ?from=&to=    inclusive YYYY-MM-DD bounds on the payment day
      ?q=           text match on description, payer or member name
      ?sort=        date-desc (default), date-asc, amount-desc, amount-asc
    """
    filters = PaymentArchiveSchema().load(request.args)
    result = balance_service.get_paid_shares(
        group_id=group_id,
        session=db.session,
        filters=filters,
    )
    return jsonify({"data": result, "warnings": []}), 200


@balances_bp.route(
    "/groups/<int:group_id>/members/<int:member_id>/pay",
    methods=["POST"],
)
def pay_member(group_id: int, member_id: int):
    """
    POST /groups/:id/members/:member_id/pay — {"to_member_id", "amount"?}

    Marks the member's oldest outstanding shares owed to to_member_id as paid.
    Any part of the amount that does not cover a whole share comes back as a
    PAYMENT_NOT_ALLOCATED warning.
    """
    data = PayMemberSchema().load(request.get_json(force=True) or {})
    result, warnings = balance_service.record_member_payment(
        group_id=group_id,
        debtor_id=member_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": warnings}), 200
