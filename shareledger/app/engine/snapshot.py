"""
engine/snapshot.py — Value types consumed and produced by the settlement engine.

A LedgerSnapshot is a point-in-time copy of a group's members and expenses,
already fetched by the storage layer (services/ledger_service.py). The engine
only reads it; every derived structure (balances, debt matrix, settlement
plan) is rebuilt from a snapshot on each call.

Member ids are opaque and compared by value. The storage layer uses integer
primary keys; tests use plain strings. Nothing in the engine depends on the
concrete id type, only on equality and hashing.

Monetary amounts are Decimal everywhere. Never float.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Hashable, Mapping

MemberId = Hashable

# Tolerance below which a monetary difference is treated as zero.
# Arithmetic is exact Decimal; the tolerance only absorbs the remainder of
# non-terminating divisions such as 100 / 3.
EPSILON = Decimal("0.01")

ZERO = Decimal("0")

# Synthetic member id used to book amounts that reference a payer or split
# member missing from the supplied member list (archived or deleted members).
UNKNOWN_MEMBER = "__unknown__"


@dataclass(frozen=True)
class Member:
    id: MemberId
    name: str


@dataclass(frozen=True)
class PaymentRecord:
    """One member's paid flag on one expense. `paid_at` is None when unpaid."""

    paid: bool
    paid_at: datetime | None = None


@dataclass(frozen=True)
class Expense:
    """
    A shared purchase.

    payer       — member id of whoever fronted the money.
    split_with  — member ids sharing the cost; may include the payer.
    payments    — sparse member id → PaymentRecord map. A missing entry means
                  the member's share is still outstanding.

    Instances are immutable; the payment overlay (payment_status.set_paid)
    returns a new Expense instead of editing this one.
    """

    id: Hashable
    amount: Decimal
    payer: MemberId
    split_with: tuple = ()
    payments: Mapping[MemberId, PaymentRecord] = field(default_factory=dict)
    description: str = ""
    date: datetime | None = None

    @property
    def share(self) -> Decimal:
        """Exact per-member share. Callers must validate split_with first."""
        return Decimal(self.amount) / len(self.split_with)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Members and expenses of one group, as fetched together."""

    members: tuple[Member, ...]
    expenses: tuple[Expense, ...]


@dataclass(frozen=True)
class SettlementTransaction:
    """`from_member` should pay `to_member` the given amount."""

    from_member: MemberId
    to_member: MemberId
    amount: Decimal

    def to_dict(self) -> dict:
        return {
            "from_member_id": self.from_member,
            "to_member_id": self.to_member,
            "amount": self.amount,
        }
