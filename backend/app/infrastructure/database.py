"""Database Session Manager — async connection pool, transaction scopes, lock primitives, error mapping.

Invariants:
    - Every session auto-rolls-back on exception (no partial commits leak)
    - transaction() holds ONE pooled connection from begin to commit/rollback, then releases it
    - All SQLAlchemy/driver exceptions mapped to ContentionError, SequenceConflictError
      or StoreUnavailableError (the documents table holds the only unique constraints)
    - Lock waits are bounded by lock_timeout_seconds (server lock_timeout / SQLite busy timeout)

Design Decisions:
    - Singleton db_manager initialized on startup: FastAPI lifespan manages lifecycle
      (ADR: no global import side effects)
    - expire_on_commit=False: prevents lazy-load issues in async context
    - SQLite opens every transaction with BEGIN IMMEDIATE: the database-wide write
      lock is a superset of both the table lock and the row locks, so the same
      service code is correct on both dialects (ADR: tests run on aiosqlite)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import (
    AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine,
)

from app.core.errors import (
    ContentionError, SequenceConflictError, StoreUnavailableError,
)

logger = logging.getLogger(__name__)

# lock_not_available, deadlock_detected, serialization_failure, query_canceled
_CONTENTION_SQLSTATES = frozenset({"55P03", "40P01", "40001", "57014"})


def _is_contention(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONTENTION_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


def _connect_args(database_url: str, lock_timeout_seconds: float) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"timeout": lock_timeout_seconds}
    if database_url.startswith("postgresql+asyncpg"):
        return {
            "server_settings": {
                "lock_timeout": str(int(lock_timeout_seconds * 1000)),
            },
        }
    return {}


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Make pysqlite hand transaction control to SQLAlchemy, then BEGIN IMMEDIATE."""

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_conn: Any, _: Any) -> None:
        dbapi_conn.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class DatabaseSessionManager:
    """Manages async database sessions with pooling, rollback, locking, and health checks."""

    def __init__(
        self,
        database_url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        lock_timeout_seconds: float = 5.0,
    ):
        self.engine = create_async_engine(
            database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
            connect_args=_connect_args(database_url, lock_timeout_seconds),
        )
        if self.engine.dialect.name == "sqlite":
            _serialize_sqlite_writers(self.engine)
        self._session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        self.lock_timeout_seconds = lock_timeout_seconds

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide session with auto-rollback on exception."""
        session = self._session_factory()
        try:
            yield session
        except IntegrityError as e:
            await session.rollback()
            logger.error(f"DB integrity error: {e}")
            raise SequenceConflictError()
        except DBAPIError as e:
            await session.rollback()
            if _is_contention(e):
                logger.warning(f"DB lock contention: {e}")
                raise ContentionError(
                    "Lock wait timed out or transaction aborted by contention",
                )
            if isinstance(e, OperationalError):
                logger.error(f"DB operational error: {e}")
                raise StoreUnavailableError("Connection or operational error", "execute")
            logger.error(f"DB driver error: {e}")
            raise StoreUnavailableError("Database driver error", "query")
        except PoolTimeoutError as e:
            await session.rollback()
            logger.warning(f"DB pool exhausted: {e}")
            raise ContentionError("No pooled connection available")
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"SQLAlchemy error: {e}")
            raise StoreUnavailableError("Database operation failed", "unknown")
        except OSError as e:
            await session.rollback()
            logger.error(f"DB connection refused: {e}")
            raise StoreUnavailableError("Database unreachable", "connect")
        finally:
            await session.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """One transaction on one dedicated connection: commit on exit, rollback on error."""
        async with self.session() as session:
            async with session.begin():
                yield session

    async def lock_exclusive(self, session: AsyncSession, table_name: str) -> None:
        """Collection-exclusive lock for the rest of the transaction.

        On SQLite the transaction already holds the database write lock
        (BEGIN IMMEDIATE), so there is nothing left to acquire.
        """
        if self.engine.dialect.name == "postgresql":
            await session.execute(text(f"LOCK TABLE {table_name} IN EXCLUSIVE MODE"))

    async def health_check(self) -> bool:
        """Check database connectivity (for readiness probes)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# Singleton (initialized on startup)
db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager


def get_store() -> DatabaseSessionManager:
    """FastAPI dependency for the transactional store."""
    if not db_manager:
        raise RuntimeError("Database not initialized")
    return db_manager
