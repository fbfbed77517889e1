"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - OwnerId wraps the integer account key — lock ordering compares OwnerIds, never positions
    - PartitionKey is always 8 digits (YYYYMMDD, UTC)
    - Money is Decimal end-to-end — floats never touch a balance
    - A money value with more than MONEY_SCALE places is rejected, never rounded
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON without custom encoders
"""

from decimal import Decimal
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

OwnerId = NewType("OwnerId", int)
PartitionKey = NewType("PartitionKey", str)
SequenceNumber = NewType("SequenceNumber", int)


# ─── Value Types ─────────────────────────────────────────────────

Money = Decimal

# accounts.balance is NUMERIC(18, 2)
MONEY_SCALE = 2


def to_money(value: Decimal | int | float | str) -> Money:
    """Exact Decimal for *value*; floats go through repr so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def has_money_scale(value: Decimal) -> bool:
    """True if *value* is finite and needs no more than MONEY_SCALE decimal places."""
    if not value.is_finite():
        return False
    return value.normalize().as_tuple().exponent >= -MONEY_SCALE


# ─── Enums ───────────────────────────────────────────────────────

class BalanceMethod(str, Enum):
    """Which ledger path produced a BalanceResult."""
    WITHOUT_TRANSACTION = "without-transaction"
    WITH_TRANSACTION = "with-transaction"
