"""Route Dependencies — build per-request service objects over the shared store.

Invariants:
    - Services are stateless wrappers: constructing one per request is free
    - Only the safe ledger paths are reachable from routes (no apply_unsafe, no prove_race_condition)

Design Decisions:
    - Settings read at dependency time, not import time: tests override env freely
"""

from fastapi import Depends

from app.config import get_settings
from app.infrastructure.database import DatabaseSessionManager, get_store
from app.services.ledger_mutator import LedgerMutator
from app.services.race_harness import RaceHarness
from app.services.sequence_allocator import SequenceAllocator


def get_sequence_allocator(
    store: DatabaseSessionManager = Depends(get_store),
) -> SequenceAllocator:
    return SequenceAllocator(store, prefix=get_settings().document_code_prefix)


def get_ledger_mutator(
    store: DatabaseSessionManager = Depends(get_store),
) -> LedgerMutator:
    return LedgerMutator(store, delay_seconds=get_settings().ledger_delay_ms / 1000)


def get_race_harness(
    allocator: SequenceAllocator = Depends(get_sequence_allocator),
) -> RaceHarness:
    return RaceHarness(
        allocator=allocator,
        max_allocations=get_settings().race_max_allocations,
    )
