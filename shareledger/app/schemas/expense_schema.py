"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, decimal precision
      - EMPTY_SPLIT            (400) — split_with must name at least one member
      - DUPLICATE_SPLIT_MEMBER (400) — a member may appear only once in split_with
      - Non-empty-after-trim enforcement for description
  - services/expense_service.py:
      - PAYER_NOT_IN_GROUP (422)        — requires DB membership lookup
      - SPLIT_MEMBER_NOT_IN_GROUP (422) — requires DB membership lookup

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate, validates

from shareledger.app.errors import ErrorCode


# ── Shared monetary amount validator ──────────────────────────────────────
#
# Strictly positive, at most 2 decimal places. Extra precision is REJECTED
# with INVALID_AMOUNT_PRECISION, never rounded or truncated. Shares are
# divided exactly by the engine; only the stored amount is held to cents.
# ──────────────────────────────────────────────────────────────────────────

def validate_monetary_amount(value: Decimal) -> None:
    """
    The route error handler detects INVALID_AMOUNT_PRECISION by matching the
    raised ValidationError message to the known ErrorCode constant.
    """
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")

    #   Decimal("10.123").as_tuple().exponent == -3  → REJECT
    #   Decimal("10.12").as_tuple().exponent  == -2  → accept
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    """Mirrors the DB CHECK(LENGTH(TRIM(description)) > 0) at the API layer."""
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _validate_unique_members(member_ids: list[int]) -> None:
    if len(member_ids) != len(set(member_ids)):
        raise ValidationError(ErrorCode.DUPLICATE_SPLIT_MEMBER)


def _member_id_field() -> fields.Int:
    return fields.Int(
        strict=True,  # reject floats like 1.0
        validate=validate.Range(min=1, error="Member ids must be positive integers."),
    )


# ── Create expense ─────────────────────────────────────────────────────────

class CreateExpenseSchema(Schema):
    """
    POST /groups/:id/expenses

    The cost is shared equally by the members in split_with. The payer may or
    may not be one of them; a payer outside the split is fully reimbursed.
    """

    paid_by_member_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="paid_by_member_id must be a positive integer."),
    )

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    amount = fields.Decimal(
        required=True,
        validate=validate_monetary_amount,
    )

    split_with = fields.List(
        _member_id_field(),
        required=True,
        validate=validate.Length(min=1, error=ErrorCode.EMPTY_SPLIT),
    )

    # When the purchase happened. Defaults to now (set by the model).
    date = fields.DateTime(load_default=None)

    @validates("split_with")
    def validate_split_with(self, value: list[int], **kwargs) -> None:
        _validate_unique_members(value)


# ── Patch expense ──────────────────────────────────────────────────────────

class PatchExpenseSchema(Schema):
    """
    PATCH /expenses/:id

    All fields are optional. Only provided fields are updated. Changing the
    split keeps the paid flags of members who stay in it.
    """

    paid_by_member_id = fields.Int(
        required=False,
        strict=True,
        validate=validate.Range(min=1, error="paid_by_member_id must be a positive integer."),
    )

    description = fields.Str(
        required=False,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    amount = fields.Decimal(
        required=False,
        validate=validate_monetary_amount,
    )

    split_with = fields.List(
        _member_id_field(),
        required=False,
        validate=validate.Length(min=1, error=ErrorCode.EMPTY_SPLIT),
    )

    date = fields.DateTime(required=False)

    @validates("split_with")
    def validate_split_with(self, value: list[int], **kwargs) -> None:
        _validate_unique_members(value)
