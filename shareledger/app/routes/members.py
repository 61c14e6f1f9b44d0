"""
routes/members.py — Member route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/v1):
  POST   /groups/:id/members    → 201  add member
  GET    /groups/:id/members    → 200  list active members, sorted by name
  GET    /members/:id           → 200  get member
  PATCH  /members/:id           → 200  rename member
  DELETE /members/:id           → 200  archive member
  GET    /members/:id/balance   → 200  member summary + page of expenses
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from shareledger.app.extensions import db
from shareledger.app.schemas.group_schema import BalancePageSchema, MemberSchema
from shareledger.app.services import member_service

members_bp = Blueprint("members", __name__)


@members_bp.route("/groups/<int:group_id>/members", methods=["POST"])
def create_member(group_id: int):
    data = MemberSchema().load(request.get_json(force=True) or {})
    result = member_service.create_member(
        group_id=group_id,
        name=data["name"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@members_bp.route("/groups/<int:group_id>/members", methods=["GET"])
def list_members(group_id: int):
    result = member_service.list_members(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@members_bp.route("/members/<int:member_id>", methods=["GET"])
def get_member(member_id: int):
    result = member_service.get_member(member_id=member_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@members_bp.route("/members/<int:member_id>", methods=["PATCH"])
def rename_member(member_id: int):
    data = MemberSchema().load(request.get_json(force=True) or {})
    result = member_service.rename_member(
        member_id=member_id,
        name=data["name"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@members_bp.route("/members/<int:member_id>", methods=["DELETE"])
def archive_member(member_id: int):
    """
    DELETE /members/:id — Archives the member.

    Their expenses stay. Balances book amounts still referencing them under
    the unknown-member entry and report an UNKNOWN_MEMBER_REFERENCE warning.
    """
    member_service.archive_member(member_id=member_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "archived": True,
            "member_id": member_id,
        },
        "warnings": [],
    }), 200


@members_bp.route("/members/<int:member_id>/balance", methods=["GET"])
def get_member_balance(member_id: int):
    """GET /members/:id/balance?limit=&offset= — newest expenses first."""
    page = BalancePageSchema().load(request.args)
    limit = page["limit"] or current_app.config["EXPENSE_PAGE_SIZE"]
    result = member_service.get_member_balance(
        member_id=member_id,
        session=db.session,
        limit=limit,
        offset=page["offset"],
    )
    return jsonify({"data": result, "warnings": []}), 200
