"""Process-wide async database connection management.

One engine and one session factory are shared by every UserManager in the
process. connect() is idempotent and awaited, so callers cannot race
operations against a half-open connection.

Connection Pattern:
- SQLite (default): aiosqlite driver, WAL mode, busy timeout
- Anything else: whatever async SQLAlchemy URL is configured
- Pooling is left to the driver / SQLAlchemy defaults
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from user_records.common.exceptions import DatabaseConnectionError, DatabaseNotConnectedError
from user_records.config.deployment_validation import log_database_configuration, redact_url
from user_records.config.settings import DatabaseSettings, settings

# Set by connect(), cleared by close_connection()
engine: AsyncEngine | None = None
async_session: async_sessionmaker[AsyncSession] | None = None

# Serializes connect(); recreated when the running event loop changes
_connect_lock: asyncio.Lock | None = None
_connect_lock_loop: asyncio.AbstractEventLoop | None = None


def _install_sqlite_pragmas(sync_engine, busy_timeout_ms: int) -> None:
    """Apply PRAGMA settings to every new SQLite DBAPI connection."""

    @event.listens_for(sync_engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")  # Write-Ahead Logging
        cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
        cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
        cursor.close()


def _get_connect_lock() -> asyncio.Lock:
    global _connect_lock, _connect_lock_loop

    loop = asyncio.get_running_loop()
    if _connect_lock is None or _connect_lock_loop is not loop:
        _connect_lock = asyncio.Lock()
        _connect_lock_loop = loop
    return _connect_lock


def is_connected() -> bool:
    """Whether a process-wide engine is currently open."""
    return engine is not None and async_session is not None


async def connect(db_settings: DatabaseSettings | None = None) -> bool:
    """Open the process-wide connection if it is not already open.

    Does nothing when already connected, even if db_settings differ.
    Concurrent callers share one engine: the first opens it, the rest wait
    and then return.

    Args:
        db_settings: Connection settings; defaults to settings.database

    Returns:
        True once the connection is usable.

    Raises:
        DatabaseConnectionError: If the engine cannot be created or the
            test query fails.
    """
    if is_connected():
        return True

    async with _get_connect_lock():
        if is_connected():
            return True
        await _open_engine(db_settings or settings.database)

    return True


async def _open_engine(db_settings: DatabaseSettings) -> None:
    global engine, async_session

    url = db_settings.url

    try:
        new_engine = create_async_engine(url, echo=db_settings.echo, **db_settings.options)
    except Exception as e:
        logger.error(f"✗ Could not create engine for {redact_url(url)}: {e}")
        raise DatabaseConnectionError(f"Could not create engine: {e}") from e

    if db_settings.is_sqlite:
        _install_sqlite_pragmas(new_engine.sync_engine, db_settings.busy_timeout_ms)

    # Test connection
    try:
        async with new_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"✗ Database connection failed ({redact_url(url)}): {e}")
        await new_engine.dispose()
        raise DatabaseConnectionError(f"Database connection failed: {e}") from e

    engine = new_engine
    async_session = async_sessionmaker(engine, expire_on_commit=False)

    log_database_configuration(db_settings)
    logger.info("✓ Database connection established")


def get_engine() -> AsyncEngine:
    """Return the open engine.

    Raises:
        DatabaseNotConnectedError: If connect() has not completed
    """
    if engine is None:
        raise DatabaseNotConnectedError("Database is not connected. Call connect() first.")
    return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory bound to the open engine.

    Raises:
        DatabaseNotConnectedError: If connect() has not completed
    """
    if async_session is None:
        raise DatabaseNotConnectedError("Database is not connected. Call connect() first.")
    return async_session


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Get a session with one transaction that commits on success.

    Usage:
        async with get_session() as session:
            await session.execute(stmt)
    """
    session_factory = get_session_factory()
    async with session_factory() as session:
        async with session.begin():
            yield session


async def checkpoint_wal() -> None:
    """Force a WAL checkpoint to write changes to the main database file.

    No-op for non-SQLite engines or when disconnected.
    """
    if engine is None or engine.dialect.name != "sqlite":
        return

    async with engine.connect() as conn:
        await conn.execute(text("PRAGMA wal_checkpoint(TRUNCATE)"))
    logger.info("SQLite WAL checkpoint complete")


async def close_connection() -> None:
    """Tear down the process-wide connection.

    Teardown errors are logged and never raised. The module is left
    disconnected either way, so connect() can be called again.
    """
    global engine, async_session

    if engine is None:
        return

    try:
        await checkpoint_wal()
    except Exception as e:
        logger.warning(f"WAL checkpoint failed: {e}")

    try:
        await engine.dispose()
        logger.info("Database connection closed")
    except Exception as e:
        logger.error(f"Error closing database connection: {e}")
    finally:
        engine = None
        async_session = None
