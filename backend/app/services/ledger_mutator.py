"""Ledger Mutator — single-account deltas (unsafe and safe paths) and deadlock-free transfers.

Invariants:
    - apply_unsafe: read, pause, write with NO lock and NO version check (lost updates are its purpose)
    - apply_safe: read under SELECT ... FOR UPDATE, pause, write, commit — lock held across the whole RMW
    - transfer: rows locked in ascending owner_id order regardless of from/to position
    - transfer: both balance writes commit together or neither does
    - Every balance feeding a write is re-read inside the writing transaction; nothing cached
    - Amounts finer than the balance column are rejected before any store call

Design Decisions:
    - Unsafe and safe paths stay two distinct methods: the unsafe one is the
      demonstration of the lost-update anomaly and is never routed over HTTP
    - The read/write pause is injected (delay_seconds + sleep) so tests tune the race
      window without real sleeps
    - Balances computed in Python from the locked read: equivalent to
      SET balance = balance + :delta while the row lock is held, and keeps previous/new in the result
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.domain_types import (
    MONEY_SCALE, BalanceMethod, OwnerId, has_money_scale, to_money,
)
from app.core.errors import (
    AccountNotFoundError, InsufficientBalanceError, InvalidArgumentError,
)
from app.core.ledger_outcomes import BalanceResult, TransferResult
from app.core.lock_ordering import order_lock_keys
from app.core.repository_protocols import TransactionalStore
from app.models.account import Account

logger = logging.getLogger(__name__)


def checked_amount(value, field: str) -> Decimal:
    """Decimal for *value*, or InvalidArgumentError if the store would have to round it."""
    amount = to_money(value)
    if not has_money_scale(amount):
        raise InvalidArgumentError(
            f"{field} must be a finite amount with at most {MONEY_SCALE} decimal places",
            field,
        )
    return amount


class LedgerMutator:
    """Balance mutations over the accounts table."""

    def __init__(
        self,
        store: TransactionalStore,
        delay_seconds: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    # ─── Single-account paths ───────────────────────────────────

    async def apply_unsafe(self, owner_id: OwnerId, delta) -> BalanceResult:
        """Read-modify-write with no transaction spanning the gap. Loses updates under concurrency."""
        amount = checked_amount(delta, "delta")

        async with self.store.session() as db:
            current = await self._read_balance(db, owner_id)

        await self._pause()
        new_balance = current + amount

        async with self.store.session() as db:
            await self._write_balance(db, owner_id, new_balance)
            await db.commit()

        logger.info(
            f"Applied {amount} to account {owner_id} without a lock",
            extra={"owner_id": owner_id, "method": BalanceMethod.WITHOUT_TRANSACTION.value},
        )
        return BalanceResult(
            owner_id=owner_id,
            previous_balance=current,
            amount=amount,
            new_balance=new_balance,
            method=BalanceMethod.WITHOUT_TRANSACTION,
        )

    async def apply_safe(self, owner_id: OwnerId, delta) -> BalanceResult:
        """Read-modify-write under a row-exclusive lock held until commit."""
        amount = checked_amount(delta, "delta")

        async with self.store.transaction() as db:
            current = await self._lock_account(db, owner_id)
            await self._pause()
            new_balance = current + amount
            await self._write_balance(db, owner_id, new_balance)

        logger.info(
            f"Applied {amount} to account {owner_id}",
            extra={"owner_id": owner_id, "method": BalanceMethod.WITH_TRANSACTION.value},
        )
        return BalanceResult(
            owner_id=owner_id,
            previous_balance=current,
            amount=amount,
            new_balance=new_balance,
            method=BalanceMethod.WITH_TRANSACTION,
        )

    # ─── Transfer ───────────────────────────────────────────────

    async def transfer(
        self, from_owner_id: OwnerId, to_owner_id: OwnerId, amount,
    ) -> TransferResult:
        """Move *amount* between two accounts atomically."""
        amount = checked_amount(amount, "amount")
        if amount <= 0:
            raise InvalidArgumentError("Amount must be greater than 0", "amount")
        if from_owner_id == to_owner_id:
            raise InvalidArgumentError(
                "Cannot transfer to the same account", "to_owner_id",
            )

        async with self.store.transaction() as db:
            balances: dict[OwnerId, Decimal] = {}
            for owner_id in order_lock_keys(from_owner_id, to_owner_id):
                balances[owner_id] = await self._lock_account(db, owner_id)

            from_balance = balances[from_owner_id]
            to_balance = balances[to_owner_id]
            if from_balance < amount:
                raise InsufficientBalanceError(from_owner_id, from_balance, amount)

            await self._write_balance(db, from_owner_id, from_balance - amount)
            await self._write_balance(db, to_owner_id, to_balance + amount)

        logger.info(
            f"Transferred {amount} from {from_owner_id} to {to_owner_id}",
            extra={"owner_id": from_owner_id},
        )
        return TransferResult(
            from_owner_id=from_owner_id,
            to_owner_id=to_owner_id,
            amount=amount,
            from_previous_balance=from_balance,
            from_new_balance=from_balance - amount,
            to_previous_balance=to_balance,
            to_new_balance=to_balance + amount,
        )

    # ─── Plain reads / resets (used by the race harness) ────────

    async def get_balance(self, owner_id: OwnerId) -> Decimal:
        async with self.store.session() as db:
            return await self._read_balance(db, owner_id)

    async def reset_balance(self, owner_id: OwnerId, balance) -> None:
        """Overwrite the balance. Not a ledger operation: no delta is recorded."""
        balance = checked_amount(balance, "balance")
        async with self.store.transaction() as db:
            await self._lock_account(db, owner_id)
            await self._write_balance(db, owner_id, balance)

        logger.info(
            f"Reset account {owner_id} to {balance}",
            extra={"owner_id": owner_id, "method": "reset"},
        )

    # ─── Helpers ────────────────────────────────────────────────

    async def _pause(self) -> None:
        if self.delay_seconds > 0:
            await self._sleep(self.delay_seconds)

    async def _read_balance(self, db: AsyncSession, owner_id: OwnerId) -> Decimal:
        result = await db.execute(
            select(Account.balance).where(Account.owner_id == owner_id),
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise AccountNotFoundError(owner_id)
        return to_money(balance)

    async def _lock_account(self, db: AsyncSession, owner_id: OwnerId) -> Decimal:
        """SELECT ... FOR UPDATE; blocks until the row lock is granted."""
        result = await db.execute(
            select(Account.balance)
            .where(Account.owner_id == owner_id)
            .with_for_update(),
        )
        balance = result.scalar_one_or_none()
        if balance is None:
            raise AccountNotFoundError(owner_id)
        return to_money(balance)

    async def _write_balance(
        self, db: AsyncSession, owner_id: OwnerId, balance: Decimal,
    ) -> None:
        result = await db.execute(
            update(Account)
            .where(Account.owner_id == owner_id)
            .values(balance=balance, updated_at=datetime.now(timezone.utc)),
        )
        if result.rowcount == 0:
            raise AccountNotFoundError(owner_id)
