"""Ledger Mutator — verifies row-locked deltas, atomic transfers, and lock ordering.

Invariants:
    - 5 concurrent apply_safe(+100) on 1000 end at 1500
    - transfer(1, 2, 500) on (1000, 200) ends at (500, 700)
    - Insufficient balance leaves both accounts unchanged
    - Locks are taken in ascending owner order regardless of argument order
    - A failure between debit and credit rolls both back
    - Amounts finer than a cent are rejected before the store, never rounded
    - A lock wait beyond the store timeout surfaces as ContentionError
    - Every committed mutation logs one INFO line

Design Decisions:
    - SQLite serializes whole transactions (BEGIN IMMEDIATE), so concurrent
      transfer runs here check conservation only; lock order is asserted directly
"""

import asyncio
import logging
from decimal import Decimal

import pytest

from app.core.domain_types import BalanceMethod
from app.core.errors import (
    AccountNotFoundError, ContentionError, InsufficientBalanceError,
    InvalidArgumentError, StoreUnavailableError,
)
from app.infrastructure.database import DatabaseSessionManager
from app.services.ledger_mutator import LedgerMutator

LEDGER_LOGGER = "app.services.ledger_mutator"


@pytest.fixture
def ledger(store):
    return LedgerMutator(store, delay_seconds=0.01)


# -- apply_safe / apply_unsafe -------------------------------------------------

async def test_apply_safe_returns_before_and_after(ledger, seed_accounts):
    """apply_safe reports previous/new balance and persists the new one."""
    result = await ledger.apply_safe(1, Decimal("250.50"))

    assert result.previous_balance == Decimal("1000")
    assert result.new_balance == Decimal("1250.50")
    assert result.amount == Decimal("250.50")
    assert result.method is BalanceMethod.WITH_TRANSACTION
    assert await ledger.get_balance(1) == Decimal("1250.50")


async def test_apply_safe_accepts_negative_delta(ledger, seed_accounts):
    """Deltas are signed; a negative one debits the account."""
    await ledger.apply_safe(2, -50)

    assert await ledger.get_balance(2) == Decimal("150")


async def test_five_concurrent_safe_increments_all_land(ledger, seed_accounts):
    """No increment is lost when five safe calls overlap."""
    await asyncio.gather(*(ledger.apply_safe(1, 100) for _ in range(5)))

    assert await ledger.get_balance(1) == Decimal("1500")


async def test_apply_safe_missing_account(ledger, seed_accounts):
    """Unknown owner maps to AccountNotFoundError (404)."""
    with pytest.raises(AccountNotFoundError) as exc_info:
        await ledger.apply_safe(999, 10)

    assert exc_info.value.http_status == 404


async def test_apply_unsafe_single_call_is_correct(ledger, seed_accounts):
    """Without contention the unsafe path still produces the right balance."""
    result = await ledger.apply_unsafe(1, 100)

    assert result.method is BalanceMethod.WITHOUT_TRANSACTION
    assert result.new_balance == Decimal("1100")
    assert await ledger.get_balance(1) == Decimal("1100")


async def test_apply_unsafe_missing_account(ledger, seed_accounts):
    """The unsafe read fails fast on an unknown owner."""
    with pytest.raises(AccountNotFoundError):
        await ledger.apply_unsafe(999, 10)


async def test_delay_is_injected(store, seed_accounts):
    """Both paths pause through the injected sleep, once per call."""
    pauses = []

    async def fake_sleep(seconds):
        pauses.append(seconds)

    ledger = LedgerMutator(store, delay_seconds=0.25, sleep=fake_sleep)
    await ledger.apply_safe(1, 1)
    await ledger.apply_unsafe(1, 1)

    assert pauses == [0.25, 0.25]


async def test_zero_delay_skips_sleep(store, seed_accounts):
    """delay_seconds=0 never calls sleep."""
    async def forbidden_sleep(seconds):
        raise AssertionError("sleep must not be called")

    ledger = LedgerMutator(store, delay_seconds=0, sleep=forbidden_sleep)

    await ledger.apply_safe(1, 1)


# -- sub-cent amounts -------------------------------------------------------------

@pytest.mark.parametrize("delta", [Decimal("0.004"), Decimal("10.001"), "-0.005"])
async def test_apply_safe_rejects_sub_cent_delta(ledger, seed_accounts, delta):
    """A delta the NUMERIC(18, 2) column would round is refused, balance untouched."""
    with pytest.raises(InvalidArgumentError) as exc_info:
        await ledger.apply_safe(1, delta)

    assert exc_info.value.field == "delta"
    assert await ledger.get_balance(1) == Decimal("1000")


async def test_apply_unsafe_rejects_sub_cent_delta(ledger, seed_accounts):
    """The unsafe path applies the same scale rule before reading."""
    with pytest.raises(InvalidArgumentError):
        await ledger.apply_unsafe(1, Decimal("0.004"))

    assert await ledger.get_balance(1) == Decimal("1000")


async def test_apply_safe_result_matches_stored_balance(ledger, seed_accounts):
    """Reported new_balance is exactly what a later read returns."""
    result = await ledger.apply_safe(1, Decimal("0.01"))

    assert await ledger.get_balance(1) == result.new_balance == Decimal("1000.01")


async def test_transfer_rejects_sub_cent_amount(ledger, seed_accounts):
    """transfer refuses 0.004 instead of reporting balances the store never held."""
    with pytest.raises(InvalidArgumentError) as exc_info:
        await ledger.transfer(1, 2, Decimal("0.004"))

    assert exc_info.value.field == "amount"
    assert await ledger.get_balance(1) == Decimal("1000")
    assert await ledger.get_balance(2) == Decimal("200")


async def test_reset_balance_rejects_sub_cent_value(ledger, seed_accounts):
    """A reset target finer than a cent is refused."""
    with pytest.raises(InvalidArgumentError) as exc_info:
        await ledger.reset_balance(1, Decimal("1.234"))

    assert exc_info.value.field == "balance"


# -- transfer -------------------------------------------------------------------

async def test_transfer_moves_amount(ledger, seed_accounts):
    """Debit and credit both land and are reported."""
    result = await ledger.transfer(1, 2, Decimal("500"))

    assert result.from_previous_balance == Decimal("1000")
    assert result.from_new_balance == Decimal("500")
    assert result.to_previous_balance == Decimal("200")
    assert result.to_new_balance == Decimal("700")
    assert await ledger.get_balance(1) == Decimal("500")
    assert await ledger.get_balance(2) == Decimal("700")


async def test_transfer_insufficient_balance_changes_nothing(ledger, seed_accounts):
    """Overdraft raises InsufficientBalanceError and rolls back both rows."""
    with pytest.raises(InsufficientBalanceError) as exc_info:
        await ledger.transfer(2, 1, Decimal("200.01"))

    assert exc_info.value.code == "INSUFFICIENT_BALANCE"
    assert await ledger.get_balance(1) == Decimal("1000")
    assert await ledger.get_balance(2) == Decimal("200")


async def test_transfer_exact_balance_is_allowed(ledger, seed_accounts):
    """Draining an account to exactly zero is not an overdraft."""
    await ledger.transfer(2, 1, Decimal("200"))

    assert await ledger.get_balance(2) == Decimal("0")


@pytest.mark.parametrize("amount", [0, -5, Decimal("-0.01")])
async def test_transfer_rejects_non_positive_amount(ledger, seed_accounts, amount):
    """amount must be > 0."""
    with pytest.raises(InvalidArgumentError) as exc_info:
        await ledger.transfer(1, 2, amount)

    assert exc_info.value.field == "amount"


async def test_transfer_rejects_same_account(ledger, seed_accounts):
    """from and to must differ."""
    with pytest.raises(InvalidArgumentError):
        await ledger.transfer(1, 1, 10)


async def test_transfer_missing_account_changes_nothing(ledger, seed_accounts):
    """An unknown counterpart aborts the whole transfer."""
    with pytest.raises(AccountNotFoundError):
        await ledger.transfer(1, 999, 10)

    assert await ledger.get_balance(1) == Decimal("1000")


async def test_transfer_locks_in_ascending_owner_order(ledger, seed_accounts):
    """Rows are locked lowest owner first, whichever side is the source."""
    order = []
    original = ledger._lock_account

    async def recording_lock(db, owner_id):
        order.append(owner_id)
        return await original(db, owner_id)

    ledger._lock_account = recording_lock

    await ledger.transfer(2, 1, 50)
    await ledger.transfer(1, 2, 50)

    assert order == [1, 2, 1, 2]


async def test_opposite_transfers_conserve_total(ledger, seed_accounts):
    """Twenty overlapping opposite-direction transfers all commit and keep the pair sum.

    SQLite serializes these transactions, so this checks conservation;
    deadlock freedom rests on the lock order asserted above.
    """
    calls = [
        ledger.transfer(1, 2, 10) if i % 2 == 0 else ledger.transfer(2, 1, 10)
        for i in range(20)
    ]

    results = await asyncio.wait_for(
        asyncio.gather(*calls, return_exceptions=True), timeout=60,
    )

    assert not [r for r in results if isinstance(r, Exception)]
    total = await ledger.get_balance(1) + await ledger.get_balance(2)
    assert total == Decimal("1200")


async def test_failure_between_debit_and_credit_rolls_back(ledger, seed_accounts):
    """A crash after the debit write leaves both balances as they were."""
    writes = 0
    original = ledger._write_balance

    async def crash_on_credit(db, owner_id, balance):
        nonlocal writes
        writes += 1
        if writes == 2:
            raise RuntimeError("crash between debit and credit")
        await original(db, owner_id, balance)

    ledger._write_balance = crash_on_credit

    with pytest.raises(RuntimeError):
        await ledger.transfer(1, 2, 500)

    assert await ledger.get_balance(1) == Decimal("1000")
    assert await ledger.get_balance(2) == Decimal("200")


# -- reads / resets ---------------------------------------------------------------

async def test_reset_balance_overwrites(ledger, seed_accounts):
    """reset_balance sets the exact value given."""
    await ledger.reset_balance(1, Decimal("42.42"))

    assert await ledger.get_balance(1) == Decimal("42.42")


async def test_get_balance_missing_account(ledger, seed_accounts):
    """Reading an unknown owner raises AccountNotFoundError."""
    with pytest.raises(AccountNotFoundError):
        await ledger.get_balance(999)


# -- logging ----------------------------------------------------------------------

@pytest.mark.parametrize("method, call", [
    ("with-transaction", lambda ledger: ledger.apply_safe(1, 5)),
    ("without-transaction", lambda ledger: ledger.apply_unsafe(1, 5)),
    ("reset", lambda ledger: ledger.reset_balance(1, 5)),
])
async def test_committed_mutation_logs_one_info_line(
    ledger, seed_accounts, caplog, method, call,
):
    """Each committed single-account mutation emits one INFO record tagged with owner and method."""
    with caplog.at_level(logging.INFO, logger=LEDGER_LOGGER):
        await call(ledger)

    records = [r for r in caplog.records if r.name == LEDGER_LOGGER]
    assert len(records) == 1
    assert records[0].levelno == logging.INFO
    assert records[0].owner_id == 1
    assert records[0].method == method


# -- store failure mapping --------------------------------------------------------

async def test_lock_wait_timeout_raises_contention(store, db_url, seed_accounts):
    """Waiting past lock_timeout_seconds surfaces as a retryable ContentionError."""
    impatient = DatabaseSessionManager(db_url, pool_size=2, lock_timeout_seconds=0.2)
    holder = LedgerMutator(store, delay_seconds=0)
    waiter = LedgerMutator(impatient, delay_seconds=0)
    try:
        async with store.transaction() as db:
            await holder._lock_account(db, 1)
            with pytest.raises(ContentionError) as exc_info:
                await waiter.apply_safe(1, 10)
    finally:
        await impatient.dispose()

    assert exc_info.value.retryable
    assert exc_info.value.http_status == 409
    assert await holder.get_balance(1) == Decimal("1000")


async def test_unreachable_store_raises_store_unavailable(tmp_path):
    """A store that cannot be opened maps to StoreUnavailableError (503)."""
    missing_dir = tmp_path / "does-not-exist" / "racelab.db"
    broken = DatabaseSessionManager(
        f"sqlite+aiosqlite:///{missing_dir}", pool_size=1,
    )
    try:
        with pytest.raises(StoreUnavailableError) as exc_info:
            await LedgerMutator(broken, delay_seconds=0).apply_safe(1, 10)
        assert await broken.health_check() is False
    finally:
        await broken.dispose()

    assert exc_info.value.http_status == 503
