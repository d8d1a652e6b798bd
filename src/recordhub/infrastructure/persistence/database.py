"""Catalog database: async engine, session factory and schema creation."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from recordhub.config import Settings
from recordhub.config.settings import DatabaseSettings
from recordhub.infrastructure.persistence.models import Base

logger = logging.getLogger(__name__)

SQLITE_LOCK_TIMEOUT_SECONDS = 30


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.endswith("://"))


def _engine_options(config: DatabaseSettings) -> dict[str, Any]:
    """create_async_engine kwargs for the configured backend."""
    options: dict[str, Any] = {"echo": config.echo}

    if config.url.startswith("postgresql"):
        options.update(
            pool_pre_ping=config.pool_pre_ping,
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_timeout=config.pool_timeout,
            pool_recycle=config.pool_recycle,
        )
    elif config.url.startswith("sqlite"):
        options["connect_args"] = {
            "check_same_thread": False,
            "timeout": SQLITE_LOCK_TIMEOUT_SECONDS,
        }
        # Hey future me - every new connection to an in-memory SQLite URL is a NEW empty
        # database! StaticPool pins one connection so tests (and a CLI run with an in-memory
        # URL) see the tables they created.
        if _is_memory_sqlite(config.url):
            options["poolclass"] = StaticPool
    return options


class Database:
    """Owns the engine and hands out sessions for the catalog tables."""

    def __init__(self, settings: Settings) -> None:
        url = settings.database.url
        self._engine = create_async_engine(url, **_engine_options(settings.database))

        if url.startswith("sqlite"):
            self._configure_sqlite(journal_wal=not _is_memory_sqlite(url))

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory

    def _configure_sqlite(self, journal_wal: bool) -> None:
        """Per-connection pragmas.

        Foreign keys are off by default in SQLite, without them deleting an album would leave
        its tracks behind. WAL lets the reindex worker write while API requests read.
        """

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragmas(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if journal_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits when the block exits cleanly and rolls back otherwise."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_tables(self) -> None:
        """Create any catalog table that doesn't exist yet."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Catalog tables ensured")

    async def close(self) -> None:
        await self._engine.dispose()
