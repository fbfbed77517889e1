"""Service test fixtures — file-backed SQLite store, seeded accounts, FastAPI test client.

Invariants:
    - Every test gets a fresh database file under tmp_path
    - Concurrent transactions use distinct pooled connections (file DB, not :memory:)
    - get_store dependency overridden to use the test store
    - db_manager patched so the readiness probe sees the test store

Design Decisions:
    - SQLite file over in-memory: an in-memory DB is private to one connection,
      which would hide every concurrency effect under test
    - Generous lock timeout: contention tests build their own short-timeout store
"""

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient

import app.infrastructure.database as db_module
import app.models  # noqa: F401
from app.db.base import Base
from app.infrastructure.database import DatabaseSessionManager, get_store
from app.main import app
from app.models.account import Account


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'racelab.db'}"


@pytest.fixture
async def store(db_url):
    manager = DatabaseSessionManager(
        db_url, pool_size=25, max_overflow=10, lock_timeout_seconds=30,
    )
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.dispose()


@pytest.fixture
async def seed_accounts(store):
    """Owner 1 holds 1000.00, owner 2 holds 200.00."""
    async with store.transaction() as db:
        db.add_all([
            Account(owner_id=1, balance=Decimal("1000.00")),
            Account(owner_id=2, balance=Decimal("200.00")),
        ])
    return {1: Decimal("1000.00"), 2: Decimal("200.00")}


@pytest.fixture
async def client(store):
    """FastAPI test client with the store dependency overridden."""
    app.dependency_overrides[get_store] = lambda: store

    original_manager = db_module.db_manager
    db_module.db_manager = store

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
