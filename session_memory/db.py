"""Async libsql access shared by the memory stores.

The synchronous ``libsql`` driver is driven through ``asyncio.to_thread()``.
Connection target is determined by settings:

- **Production**: ``TURSO_DATABASE_URL`` + ``TURSO_AUTH_TOKEN`` → remote Turso
- **Dev/test**: no Turso env vars → local SQLite file via ``database_path``

Stores subclass :class:`SqlStore`, declare their ``CREATE TABLE`` statements in
``_schema`` and run queries inside ``async with self._session() as db``.
Driver failures surface as :class:`~session_memory.errors.StoreError`.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, ClassVar, Self

import libsql

from session_memory.config import settings
from session_memory.errors import MemoryEngineError, StoreError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

logger = logging.getLogger(__name__)


class _AsyncCursor:
    """Result of one statement, fetched off the event loop."""

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor

    async def fetchone(self) -> tuple | None:
        return await asyncio.to_thread(self._cursor.fetchone)

    async def fetchall(self) -> list[tuple]:
        return await asyncio.to_thread(self._cursor.fetchall)

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    @property
    def lastrowid(self) -> int | None:
        return self._cursor.lastrowid


class _AsyncConnection:
    """A libsql connection whose calls run in a worker thread."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    async def execute(self, sql: str, params: tuple = ()) -> _AsyncCursor:
        cursor = await asyncio.to_thread(self._conn.execute, sql, params)
        return _AsyncCursor(cursor)

    async def fetchone(self, sql: str, params: tuple = ()) -> tuple | None:
        cursor = await self.execute(sql, params)
        return await cursor.fetchone()

    async def fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        cursor = await self.execute(sql, params)
        return await cursor.fetchall()

    async def commit(self) -> None:
        await asyncio.to_thread(self._conn.commit)

    async def close(self) -> None:
        await asyncio.to_thread(self._conn.close)


def _open_local(path: str) -> Any:
    conn = libsql.connect(path)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection(local_path_override: Path | None = None) -> _AsyncConnection:
    """Return an async-wrapped libsql connection.

    If *local_path_override* is given (test isolation), it takes priority.
    Otherwise, ``TURSO_DATABASE_URL`` triggers a remote connection, and
    ``database_path`` falls back to a local file.
    """
    if local_path_override:
        local_path_override.parent.mkdir(parents=True, exist_ok=True)
        conn = await asyncio.to_thread(_open_local, str(local_path_override))
        return _AsyncConnection(conn)

    if settings.turso_database_url:
        conn = await asyncio.to_thread(
            libsql.connect,
            database=settings.turso_database_url,
            auth_token=settings.turso_auth_token,
        )
        return _AsyncConnection(conn)

    settings.database_path.parent.mkdir(parents=True, exist_ok=True)
    conn = await asyncio.to_thread(_open_local, str(settings.database_path))
    return _AsyncConnection(conn)


class SqlStore:
    """Base for stores backed by one or more libsql tables.

    Shared instance via ``Store.get()``.  Pass an explicit *db_path* for test
    isolation (e.g. ``tmp_path / "test.db"``).
    """

    _schema: ClassVar[tuple[str, ...]] = ()
    _instance: ClassVar[Any] = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path
        self._initialised = False

    @classmethod
    def get(cls) -> Self:
        """Return the shared instance of this store."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the shared instance (for testing)."""
        cls._instance = None

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[_AsyncConnection]:
        """Open a connection, create tables on first use, always close."""
        try:
            db = await get_connection(local_path_override=self._db_path)
        except Exception as exc:
            raise StoreError(f"{type(self).__name__}: cannot open database") from exc

        try:
            if not self._initialised:
                for statement in self._schema:
                    await db.execute(statement)
                await db.commit()
                self._initialised = True
            yield db
        except MemoryEngineError:
            raise
        except Exception as exc:
            logger.exception("%s query failed", type(self).__name__)
            raise StoreError(f"{type(self).__name__}: query failed") from exc
        finally:
            await db.close()
