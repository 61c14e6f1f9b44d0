"""
routes/groups.py — Group route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (url_prefix=/api/v1):
  POST   /groups              → 201  create group
  GET    /groups              → 200  list groups with member counts
  GET    /groups/:id          → 200  get group
  POST   /groups/:id/verify   → 200  check the group password
  PATCH  /groups/:id          → 200  rename and/or change password
  DELETE /groups/:id          → 200  delete a group without active members
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from shareledger.app.extensions import db
from shareledger.app.schemas.group_schema import (
    CreateGroupSchema,
    UpdateGroupSchema,
    VerifyPasswordSchema,
)
from shareledger.app.services import group_service

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/groups", methods=["POST"])
def create_group():
    """POST /groups — Create a new, empty, password-protected group."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(
        name=data["name"],
        password=data["password"],
        created_by=data.get("created_by"),
        session=db.session,
        log_rounds=current_app.config["BCRYPT_LOG_ROUNDS"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/groups", methods=["GET"])
def list_groups():
    """GET /groups — All groups, ordered by name. Never includes password hashes."""
    result = group_service.list_groups(session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/groups/<int:group_id>", methods=["GET"])
def get_group(group_id: int):
    result = group_service.get_group(group_id=group_id, session=db.session)
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/groups/<int:group_id>/verify", methods=["POST"])
def verify_group_password(group_id: int):
    """POST /groups/:id/verify — 200 with the group on match, 401 INVALID_PASSWORD otherwise."""
    data = VerifyPasswordSchema().load(request.get_json(force=True) or {})
    result = group_service.verify_group_password(
        group_id=group_id,
        password=data["password"],
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/groups/<int:group_id>", methods=["PATCH"])
def update_group(group_id: int):
    data = UpdateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.update_group(
        group_id=group_id,
        data=data,
        session=db.session,
        log_rounds=current_app.config["BCRYPT_LOG_ROUNDS"],
    )
    db.session.commit()
    return jsonify({"data": result, "warnings": []}), 200


@groups_bp.route("/groups/<int:group_id>", methods=["DELETE"])
def delete_group(group_id: int):
    """
    DELETE /groups/:id — Only allowed once every member has been removed.
    Archived members and all expenses of the group are deleted with it.
    """
    group_service.delete_group(group_id=group_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "group_id": group_id,
        },
        "warnings": [],
    }), 200
