"""Async SQLAlchemy helpers for the order management service."""

from __future__ import annotations

from typing import Any

from sqlalchemy import MetaData, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import ServiceSettings

_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, async_sessionmaker[AsyncSession]] = {}

DEFAULT_SQLITE_BEGIN_MODE = "IMMEDIATE"

# Connection execution option marking a transaction that will write.
WRITE_TRANSACTION = "write_transaction"


def _is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def _install_sqlite_begin(engine: AsyncEngine, begin_mode: str) -> None:
    """Take over BEGIN emission on SQLite.

    Only connections carrying the ``write_transaction`` execution option get a
    ``BEGIN <mode>``; anything else runs each statement in autocommit so plain
    reads hold no lock past the statement.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record) -> None:  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn) -> None:  # pragma: no cover - driver hook
        if conn.get_execution_options().get(WRITE_TRANSACTION):
            conn.exec_driver_sql(f"BEGIN {begin_mode}")


def create_engine(
    database_url: str,
    *,
    sqlite_begin_mode: str = DEFAULT_SQLITE_BEGIN_MODE,
    **kwargs: Any,
) -> AsyncEngine:
    """Create or reuse a cached AsyncEngine for the given URL."""

    if database_url in _ENGINE_CACHE:
        return _ENGINE_CACHE[database_url]

    engine = create_async_engine(database_url, pool_pre_ping=True, **kwargs)
    if _is_sqlite(database_url):
        _install_sqlite_begin(engine, sqlite_begin_mode)
    _ENGINE_CACHE[database_url] = engine
    return engine


def get_session_factory(
    database_url: str,
    *,
    sqlite_begin_mode: str = DEFAULT_SQLITE_BEGIN_MODE,
) -> async_sessionmaker[AsyncSession]:
    """Return an async_sessionmaker bound to the cached engine."""

    if database_url in _SESSION_FACTORY_CACHE:
        return _SESSION_FACTORY_CACHE[database_url]

    engine = create_engine(database_url, sqlite_begin_mode=sqlite_begin_mode)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    _SESSION_FACTORY_CACHE[database_url] = session_factory
    return session_factory


async def create_schema(engine: AsyncEngine, metadata: MetaData) -> None:
    """Create any missing tables for ``metadata``."""

    async with engine.execution_options(**{WRITE_TRANSACTION: True}).begin() as conn:
        await conn.run_sync(metadata.create_all)


def resolve_database_url(settings: ServiceSettings, fallback: str) -> str:
    """Pick database URL from settings or fallback."""

    return settings.database_url or fallback


async def dispose_engines() -> None:
    """Dispose all cached engines (used on shutdown or tests)."""

    for engine in _ENGINE_CACHE.values():
        await engine.dispose()
    _ENGINE_CACHE.clear()
    _SESSION_FACTORY_CACHE.clear()
