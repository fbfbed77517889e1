"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Every transaction gets a dedicated connection, released unconditionally
    - transaction() commits on clean exit and rolls back on ANY exception

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy (ADR: ExMA anti-pattern)
    - Sessions are SQLAlchemy AsyncSession: row locks are expressed as
      select(...).with_for_update(), only the collection lock needs the store
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession


class TransactionalStore(Protocol):
    """Contract for the relational store consumed by the services."""

    def session(self) -> AbstractAsyncContextManager[AsyncSession]:
        """Pooled session with auto-rollback; no explicit transaction scope."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[AsyncSession]:
        """Dedicated session inside begin/commit, rollback on error."""
        ...

    async def lock_exclusive(self, session: AsyncSession, table_name: str) -> None:
        """Block every other writer to *table_name* until the transaction ends."""
        ...

    async def health_check(self) -> bool: ...
