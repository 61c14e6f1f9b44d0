"""
schemas/group_schema.py — Marshmallow schemas for group and member endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/group_service.py and services/member_service.py:
      - GROUP_NOT_FOUND / MEMBER_NOT_FOUND (require DB lookup)
      - INVALID_PASSWORD (requires the stored bcrypt hash)
      - GROUP_HAS_MEMBERS (requires a member count)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate, validates_schema


def _validate_non_empty_after_trim(value: str) -> None:
    """
    validate.Length(min=1) alone allows "   ". Mirrors the DB
    CHECK(LENGTH(TRIM(name)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _name_field(required: bool, label: str) -> fields.Str:
    return fields.Str(
        required=required,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error=f"{label} must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )


def _password_field(required: bool) -> fields.Str:
    return fields.Str(
        required=required,
        validate=validate.Length(
            min=1,
            max=128,
            error="Password must be between 1 and 128 characters.",
        ),
    )


# ── Groups ─────────────────────────────────────────────────────────────────

class CreateGroupSchema(Schema):
    """POST /groups"""

    name = _name_field(True, "Group name")
    password = _password_field(True)

    # Free-text label of whoever set the group up. Defaults to "System".
    created_by = fields.Str(
        load_default=None,
        validate=validate.Length(max=100),
    )


class UpdateGroupSchema(Schema):
    """PATCH /groups/:id — at least one of name / password."""

    name = _name_field(False, "Group name")
    password = _password_field(False)

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("Provide a name or a password to update.")


class VerifyPasswordSchema(Schema):
    """POST /groups/:id/verify"""

    password = fields.Str(required=True)


# ── Members ────────────────────────────────────────────────────────────────

class MemberSchema(Schema):
    """POST /groups/:id/members and PATCH /members/:id"""

    name = _name_field(True, "Member name")


class BalancePageSchema(Schema):
    """Query string of GET /members/:id/balance."""

    limit = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, max=200),
    )
    offset = fields.Int(
        load_default=0,
        validate=validate.Range(min=0),
    )
