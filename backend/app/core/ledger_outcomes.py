"""Ledger Outcomes — immutable result records and pure report arithmetic.

Invariants:
    - expected_balance = initial_balance + sum(amounts), computed in Decimal
    - difference = expected_balance - final_balance (positive means updates were lost)
    - Reports never raise on a mismatch: divergence of the unsafe path is an outcome, not an error

Design Decisions:
    - Frozen dataclasses over dicts: results cross the service/API seam and must not be mutated
    - Report assembly is pure so the arithmetic is testable without a store
"""

from dataclasses import dataclass, field
from decimal import Decimal

from app.core.domain_types import BalanceMethod, OwnerId, SequenceNumber
from app.core.document_codes import is_contiguous_run


@dataclass(frozen=True)
class BalanceResult:
    owner_id: OwnerId
    previous_balance: Decimal
    amount: Decimal
    new_balance: Decimal
    method: BalanceMethod


@dataclass(frozen=True)
class TransferResult:
    from_owner_id: OwnerId
    to_owner_id: OwnerId
    amount: Decimal
    from_previous_balance: Decimal
    from_new_balance: Decimal
    to_previous_balance: Decimal
    to_new_balance: Decimal


@dataclass(frozen=True)
class PathOutcome:
    """Final state of one concurrent run (unsafe or safe path)."""
    final_balance: Decimal
    is_correct: bool
    difference: Decimal
    failed_calls: int = 0


@dataclass(frozen=True)
class RaceConditionReport:
    owner_id: OwnerId
    initial_balance: Decimal
    amounts: list[Decimal]
    total_amount: Decimal
    expected_balance: Decimal
    without_transaction: PathOutcome
    with_transaction: PathOutcome


@dataclass(frozen=True)
class AllocatedCode:
    code: str
    sequence: SequenceNumber


@dataclass(frozen=True)
class SequenceAllocationReport:
    count: int
    documents: list[AllocatedCode] = field(default_factory=list)
    failed_calls: int = 0

    @property
    def sequences(self) -> list[int]:
        return [d.sequence for d in self.documents]

    @property
    def is_contiguous(self) -> bool:
        return is_contiguous_run(self.sequences)


def summarize_path(
    final_balance: Decimal, expected_balance: Decimal, failed_calls: int = 0,
) -> PathOutcome:
    return PathOutcome(
        final_balance=final_balance,
        is_correct=final_balance == expected_balance,
        difference=expected_balance - final_balance,
        failed_calls=failed_calls,
    )


def build_race_report(
    owner_id: OwnerId,
    initial_balance: Decimal,
    amounts: list[Decimal],
    unsafe_final: Decimal,
    safe_final: Decimal,
    unsafe_failures: int = 0,
    safe_failures: int = 0,
) -> RaceConditionReport:
    """Assemble the side-by-side report for one prove_race_condition run."""
    total = sum(amounts, Decimal("0"))
    expected = initial_balance + total
    return RaceConditionReport(
        owner_id=owner_id,
        initial_balance=initial_balance,
        amounts=list(amounts),
        total_amount=total,
        expected_balance=expected,
        without_transaction=summarize_path(unsafe_final, expected, unsafe_failures),
        with_transaction=summarize_path(safe_final, expected, safe_failures),
    )


def build_sequence_report(
    count: int, allocated: list[AllocatedCode], failed_calls: int = 0,
) -> SequenceAllocationReport:
    """Order allocations by sequence number (i.e. commit order)."""
    return SequenceAllocationReport(
        count=count,
        documents=sorted(allocated, key=lambda a: a.sequence),
        failed_calls=failed_calls,
    )
