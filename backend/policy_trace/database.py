"""
Store — the single SQLite database behind the service.

A ``Store`` is built once at process start (see ``main.lifespan``) and handed
to request handlers through ``app.state.store``. It owns the async engine and
the session factory; ``init_schema`` creates every table if absent.
"""

import logging
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from policy_trace.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    """Set SQLite pragmas on each new connection.

    Args:
        dbapi_connection: The raw DBAPI connection.
        connection_record: The connection record (unused but required by event signature).
    """
    cursor = dbapi_connection.cursor()
    # ON DELETE CASCADE is only honoured with enforcement switched on
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.execute("PRAGMA busy_timeout = 30000")
    cursor.close()


def _ensure_parent_dir(db_path: str) -> None:
    if db_path and db_path != ":memory:":
        Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)


class Store:
    """Engine + session factory for one SQLite file."""

    def __init__(self, database_url: str, *, echo: bool = False):
        self.database_url = database_url
        self.engine = create_async_engine(database_url, echo=echo)
        event.listen(self.engine.sync_engine, "connect", _set_sqlite_pragmas)
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Store":
        _ensure_parent_dir(settings.db_path)
        return cls(settings.database_url)

    async def init_schema(self) -> None:
        """Create all tables and indexes that do not exist yet."""
        from policy_trace import models  # noqa: F401  (registers tables on Base)

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ready at %s", self.database_url)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def dispose(self) -> None:
        await self.engine.dispose()
