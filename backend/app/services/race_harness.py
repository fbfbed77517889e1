"""Race Harness — drives concurrent calls into the allocator and ledger to make contention observable.

Invariants:
    - Holds no state: every number in a report is read back from the store
    - Concurrent calls run to completion; one failure never cancels its siblings
    - Unsafe-path divergence is reported, never raised
    - prove_sequence_allocation count is bounded (1..max_allocations)

Design Decisions:
    - asyncio.gather(return_exceptions=True) mirrors "launch all, wait for all"
    - Failed calls are counted into the report; failures that leave no committed
      documents are re-raised from prove_sequence_allocation since its report would be empty
"""

import asyncio
import logging
from datetime import datetime, timezone

from app.core.domain_types import OwnerId, SequenceNumber
from app.core.errors import InvalidArgumentError
from app.core.ledger_outcomes import (
    AllocatedCode, RaceConditionReport, SequenceAllocationReport,
    build_race_report, build_sequence_report,
)
from app.services.ledger_mutator import LedgerMutator, checked_amount
from app.services.sequence_allocator import SequenceAllocator

logger = logging.getLogger(__name__)


def _failures(results: list) -> list[BaseException]:
    return [r for r in results if isinstance(r, BaseException)]


class RaceHarness:
    """Concurrent drivers for the unsafe/safe ledger paths and the allocator."""

    def __init__(
        self,
        ledger: LedgerMutator | None = None,
        allocator: SequenceAllocator | None = None,
        max_allocations: int = 20,
    ):
        self.ledger = ledger
        self.allocator = allocator
        self.max_allocations = max_allocations

    async def prove_race_condition(
        self, owner_id: OwnerId, deltas: list,
    ) -> RaceConditionReport:
        """Run *deltas* concurrently through apply_unsafe, then apply_safe, from the same start."""
        if self.ledger is None:
            raise RuntimeError("RaceHarness built without a LedgerMutator")
        if not deltas:
            raise InvalidArgumentError("amounts array cannot be empty", "deltas")
        amounts = [checked_amount(d, "deltas") for d in deltas]

        initial = await self.ledger.get_balance(owner_id)

        await self.ledger.reset_balance(owner_id, initial)
        unsafe_results = await asyncio.gather(
            *(self.ledger.apply_unsafe(owner_id, a) for a in amounts),
            return_exceptions=True,
        )
        unsafe_final = await self.ledger.get_balance(owner_id)

        await self.ledger.reset_balance(owner_id, initial)
        safe_results = await asyncio.gather(
            *(self.ledger.apply_safe(owner_id, a) for a in amounts),
            return_exceptions=True,
        )
        safe_final = await self.ledger.get_balance(owner_id)

        report = build_race_report(
            owner_id, initial, amounts, unsafe_final, safe_final,
            unsafe_failures=len(_failures(unsafe_results)),
            safe_failures=len(_failures(safe_results)),
        )
        logger.info(
            f"Race run on {owner_id}: expected {report.expected_balance}, "
            f"unsafe {unsafe_final}, safe {safe_final}",
            extra={"owner_id": owner_id},
        )
        return report

    async def prove_sequence_allocation(self, count: int) -> SequenceAllocationReport:
        """Allocate *count* documents at once and report the numbers they received."""
        if self.allocator is None:
            raise RuntimeError("RaceHarness built without a SequenceAllocator")
        if count < 1 or count > self.max_allocations:
            raise InvalidArgumentError(
                f"Maximum {self.max_allocations} concurrent requests allowed",
                "count",
            )

        results = await asyncio.gather(
            *(
                self.allocator.allocate({
                    "test": True,
                    "index": i + 1,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                })
                for i in range(count)
            ),
            return_exceptions=True,
        )
        failures = _failures(results)
        if failures and len(failures) == len(results):
            raise failures[0]
        if failures:
            logger.warning(f"{len(failures)} of {count} allocations failed")

        allocated = [
            AllocatedCode(code=d.code, sequence=SequenceNumber(d.sequence_number))
            for d in results
            if not isinstance(d, BaseException)
        ]
        return build_sequence_report(count, allocated, failed_calls=len(failures))

