"""Lock Ordering — the single global order in which account rows are locked.

Invariants:
    - Order depends only on the key values, never on argument position
    - Duplicates collapse: a row is locked at most once per transaction
    - Works for any number of keys (N-account operations sort the full set)

Design Decisions:
    - Ascending owner id: any two transactions contending for overlapping rows
      wait on the lowest shared key first, so no wait cycle can form
"""

from app.core.domain_types import OwnerId


def order_lock_keys(*owner_ids: OwnerId) -> list[OwnerId]:
    return sorted(set(owner_ids))
