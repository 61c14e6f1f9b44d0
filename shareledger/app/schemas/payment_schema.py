"""
schemas/payment_schema.py — Marshmallow schemas for payment endpoints.

  SetPaymentSchema      PATCH /expenses/:id/payments/:member_id
  PayMemberSchema       POST  /groups/:id/members/:member_id/pay
  PaymentArchiveSchema  GET   /groups/:id/payments (query string)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate, validates_schema

from shareledger.app.engine.summary import PAID_SHARE_SORTS, SORT_DATE_DESC
from shareledger.app.schemas.expense_schema import validate_monetary_amount


class SetPaymentSchema(Schema):
    # JSON booleans only; strings such as "true" are rejected.
    paid = fields.Bool(
        required=True,
        truthy={True},
        falsy={False},
    )


class PayMemberSchema(Schema):
    """
    A lump payment from the member in the URL to `to_member_id`.

    `amount` is optional; when omitted, everything currently owed to
    `to_member_id` is paid.
    """

    to_member_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="to_member_id must be a positive integer."),
    )

    amount = fields.Decimal(
        load_default=None,
        validate=validate_monetary_amount,
    )


class PaymentArchiveSchema(Schema):
    """
    Query string of the settled-share archive. `from` and `to` are inclusive
    dates (YYYY-MM-DD) on the day a share was marked paid.
    """

    class Meta:
        unknown = EXCLUDE

    member_id = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, error="member_id must be a positive integer."),
    )
    payer_id = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, error="payer_id must be a positive integer."),
    )
    start = fields.Date(data_key="from", load_default=None)
    end = fields.Date(data_key="to", load_default=None)
    q = fields.Str(load_default=None, validate=validate.Length(max=100))
    sort = fields.Str(
        load_default=SORT_DATE_DESC,
        validate=validate.OneOf(PAID_SHARE_SORTS),
    )

    @validates_schema
    def validate_range(self, data: dict, **kwargs) -> None:
        start, end = data.get("start"), data.get("end")
        if start is not None and end is not None and start > end:
            raise ValidationError("'from' must not be after 'to'.", field_name="from")
