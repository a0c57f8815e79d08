"""
Database Service for the Life Physics cloud sync store.

Purpose
-------
Centralized async engine and session management. Only signed-in users touch
the database; guests run entirely on the local device store.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine with connection pooling
- Provide async context managers for read-only sessions and transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Create the schema on demand (``create_schema``)
- Expose a lightweight health check

Non-Responsibilities
--------------------
- Sync semantics (SyncService)
- Wrapping driver errors into ``DatabaseError`` (SyncService does that at the
  operation boundary, where the operation name is known)

Transaction Model
-----------------
``get_transaction()`` is the interface for every write. Never call
``session.commit()`` inside service code.

Pooling
-------
QueuePool-style pooling in normal runs, NullPool in the testing environment
so each test gets fresh connections.

Usage Example
-------------
>>> await DatabaseService.initialize()
>>> async with DatabaseService.get_transaction() as session:
...     session.add(TaskRecord(...))
...     # commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from lifephysics.core.config.config import Config
from lifephysics.core.database.base import Base
from lifephysics.core.logging.logger import get_logger

logger = get_logger(__name__)


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


class DatabaseService:
    """
    Class-level engine and session factory.

    Public API
    ----------
    - initialize(url=None) / shutdown()
    - get_session(): no automatic commit
    - get_transaction(): commit on success, rollback on error
    - create_schema(): create all tables (idempotent)
    - health_check(): ``SELECT 1``
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        # Created lazily so the lock binds to the running loop.
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @staticmethod
    def _engine_options() -> dict[str, Any]:
        options: dict[str, Any] = {"echo": Config.DATABASE_ECHO}
        if Config.is_testing():
            options["poolclass"] = NullPool
        else:
            options.update(
                pool_size=Config.DATABASE_POOL_SIZE,
                max_overflow=Config.DATABASE_MAX_OVERFLOW,
                pool_recycle=Config.DATABASE_POOL_RECYCLE,
                pool_timeout=Config.DATABASE_POOL_TIMEOUT,
                pool_pre_ping=True,
            )
        return options

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Create the engine and session factory. Idempotent.

        Parameters
        ----------
        url:
            Override for ``Config.DATABASE_URL`` (integration tests pass the
            container URL here).

        Raises
        ------
        DatabaseInitializationError
            If no URL is configured or engine creation fails.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            database_url = url or Config.DATABASE_URL
            if not database_url:
                raise DatabaseInitializationError("DATABASE_URL is not configured")

            scheme = database_url.split("://", 1)[0]
            logger.info("Initializing DatabaseService", extra={"url_scheme": scheme})

            try:
                cls._engine = create_async_engine(database_url, **cls._engine_options())
                cls._session_factory = async_sessionmaker(
                    bind=cls._engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                cls._engine = None
                cls._session_factory = None
                raise DatabaseInitializationError(f"Database initialization failed: {exc}") from exc

            logger.info("DatabaseService initialized", extra={"null_pool": Config.is_testing()})

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine. Safe to call when not initialized."""
        async with cls._lock():
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await cls._engine.dispose()
            finally:
                cls._engine = None
                cls._session_factory = None
            logger.info("DatabaseService shutdown complete")

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    async def create_schema(cls) -> None:
        """Create every table registered on ``Base``. Existing tables are kept."""
        cls._ensure_initialized()
        assert cls._engine is not None

        # Registers the record classes on Base.metadata.
        import lifephysics.database.models  # noqa: F401

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ensured", extra={"tables": sorted(Base.metadata.tables)})

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """``SELECT 1`` against the engine. Returns False instead of raising."""
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """Session without automatic commit, for reads."""
        cls._ensure_initialized()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            logger.debug("Database session opened (read-only)")
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in a transaction.

        Commits when the block exits normally; rolls back and re-raises on any
        exception.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )
            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    "Database error in transaction; rolled back",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise
            except Exception as exc:
                await session.rollback()
                logger.warning(
                    "Error in transaction; rolled back",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )
                raise
