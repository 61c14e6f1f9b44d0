"""
errors.py — AppError base class and error code registry.

Every error returned by the ShareLedger API uses a code defined here.
Service and route code never raises strings or generic exceptions.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - The settlement engine (app/engine) does not raise AppError. It degrades
    gracefully and reports problems as warnings (see WarningCode below).
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    EMPTY_SPLIT                = "EMPTY_SPLIT"
    DUPLICATE_SPLIT_MEMBER     = "DUPLICATE_SPLIT_MEMBER"

    # ── Auth Errors (401) ──────────────────────────────────────────────────
    INVALID_PASSWORD           = "INVALID_PASSWORD"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    MEMBER_NOT_FOUND           = "MEMBER_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    GROUP_HAS_MEMBERS          = "GROUP_HAS_MEMBERS"

    # ── Business Rule Violations (422) ────────────────────────────────────
    PAYER_NOT_IN_GROUP         = "PAYER_NOT_IN_GROUP"
    SPLIT_MEMBER_NOT_IN_GROUP  = "SPLIT_MEMBER_NOT_IN_GROUP"
    MEMBER_NOT_IN_SPLIT        = "MEMBER_NOT_IN_SPLIT"
    SELF_PAYMENT               = "SELF_PAYMENT"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They never block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # An expense with an empty split or non-positive amount was left out
    # of the computed balances.
    INVALID_EXPENSE_SKIPPED  = "INVALID_EXPENSE_SKIPPED"

    # An expense references a member that no longer exists; its amounts were
    # booked under the synthetic "unknown" member.
    UNKNOWN_MEMBER_REFERENCE = "UNKNOWN_MEMBER_REFERENCE"

    # Part of a lump payment could not be matched to whole outstanding shares.
    PAYMENT_NOT_ALLOCATED    = "PAYMENT_NOT_ALLOCATED"
