"""Root conftest — shared test configuration."""

import os

# Tests never touch a real PostgreSQL; service fixtures build their own SQLite stores
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
# Route tests exercise the ledger without the demo read/write pause
os.environ.setdefault("LEDGER_DELAY_MS", "0")
