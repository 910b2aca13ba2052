"""SQLite storage backend for tasks and the sync queue."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from tasksync.storage.base import TaskStorage
from tasksync.storage.sqlite_schema import SCHEMA, SCHEMA_VERSION
from tasksync.storage.sqlite_sync_queue import SQLiteSyncQueueMixin
from tasksync.storage.sqlite_tasks import SQLiteTaskMixin

logger = logging.getLogger(__name__)


class SQLiteStorage(
    SQLiteTaskMixin,
    SQLiteSyncQueueMixin,
    TaskStorage,
):
    """SQLite-based storage for tasks and pending mutations.

    Uses a single writer connection. Writes made inside ``transaction()``
    share one COMMIT; outside it every write commits on its own.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = db_path if str(db_path) == ":memory:" else Path(db_path).resolve()
        self._conn: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        # asyncio task holding the open transaction, if any
        self._tx_owner: asyncio.Task[object] | None = None

    @property
    def db_path(self) -> str | Path:
        return self._db_path

    async def initialize(self) -> None:
        """Open the connection and create the schema if needed."""
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA synchronous=NORMAL")

        await self._conn.executescript(SCHEMA)

        async with self._conn.execute("SELECT version FROM schema_version") as cursor:
            row = await cursor.fetchone()
        if row is None:
            await self._conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
        elif row["version"] > SCHEMA_VERSION:
            logger.warning(
                "Database %s has schema version %d, newer than supported %d",
                self._db_path,
                row["version"],
                SCHEMA_VERSION,
            )
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _ensure_conn(self) -> aiosqlite.Connection:
        """Ensure writer connection is available."""
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Group writes into one COMMIT, or roll them all back on error.

        Nested use by the same asyncio task joins the outer transaction.
        Other tasks wait on the write lock until it has finished, so a
        rollback never discards their writes.
        """
        conn = self._ensure_conn()
        current = asyncio.current_task()
        if self._tx_owner is not None and self._tx_owner is current:
            yield
            return

        async with self._write_lock:
            self._tx_owner = current
            try:
                yield
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()
            finally:
                self._tx_owner = None
