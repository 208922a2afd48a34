"""Tests for async database connection abstraction and the store base."""

from pathlib import Path

import pytest

from session_memory.db import SqlStore, _AsyncConnection, get_connection
from session_memory.errors import StoreError, ValidationError

pytestmark = pytest.mark.usefixtures("_no_turso")


class _NotesStore(SqlStore):
    _schema = ("CREATE TABLE IF NOT EXISTS notes (id INTEGER PRIMARY KEY, body TEXT)",)

    async def add(self, body: str) -> None:
        async with self._session() as db:
            await db.execute("INSERT INTO notes (body) VALUES (?)", (body,))
            await db.commit()

    async def bodies(self) -> list[str]:
        async with self._session() as db:
            rows = await db.fetchall("SELECT body FROM notes ORDER BY id")
        return [r[0] for r in rows]

    async def broken(self) -> None:
        async with self._session() as db:
            await db.execute("SELECT * FROM missing_table")

    async def rejects(self) -> None:
        async with self._session():
            raise ValidationError("bad input")


class TestGetConnection:
    async def test_returns_async_connection(self, tmp_path: Path):
        conn = await get_connection(local_path_override=tmp_path / "test.db")
        assert isinstance(conn, _AsyncConnection)
        await conn.close()

    async def test_creates_parent_dirs(self, tmp_path: Path):
        db_path = tmp_path / "nested" / "dir" / "test.db"
        conn = await get_connection(local_path_override=db_path)
        assert db_path.parent.exists()
        await conn.close()


class TestAsyncConnection:
    async def test_fetch_helpers(self, tmp_path: Path):
        conn = await get_connection(local_path_override=tmp_path / "test.db")
        await conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        cursor = await conn.execute("INSERT INTO t (val) VALUES (?)", ("hello",))
        assert cursor.lastrowid == 1
        await conn.commit()

        assert await conn.fetchone("SELECT val FROM t WHERE id = ?", (1,)) == ("hello",)
        assert await conn.fetchall("SELECT id, val FROM t") == [(1, "hello")]
        assert await conn.fetchone("SELECT val FROM t WHERE id = ?", (2,)) is None
        await conn.close()

    async def test_rowcount(self, tmp_path: Path):
        conn = await get_connection(local_path_override=tmp_path / "test.db")
        await conn.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        await conn.execute("INSERT INTO t (val) VALUES ('a')")
        await conn.execute("INSERT INTO t (val) VALUES ('b')")
        cursor = await conn.execute("UPDATE t SET val = 'c'")
        assert cursor.rowcount == 2
        await conn.commit()
        await conn.close()


class TestSqlStore:
    async def test_schema_created_on_first_use(self, tmp_path: Path):
        store = _NotesStore(db_path=tmp_path / "test.db")
        await store.add("first")
        await store.add("second")
        assert await store.bodies() == ["first", "second"]

    async def test_driver_errors_become_store_error(self, tmp_path: Path):
        store = _NotesStore(db_path=tmp_path / "test.db")
        with pytest.raises(StoreError):
            await store.broken()

    async def test_engine_errors_pass_through(self, tmp_path: Path):
        store = _NotesStore(db_path=tmp_path / "test.db")
        with pytest.raises(ValidationError):
            await store.rejects()

    async def test_open_failure_is_store_error(self, tmp_path: Path, monkeypatch):
        async def refuse(**_kwargs):
            raise OSError("disk on fire")

        monkeypatch.setattr("session_memory.db.get_connection", refuse)
        store = _NotesStore(db_path=tmp_path / "test.db")
        with pytest.raises(StoreError, match="cannot open"):
            await store.bodies()

    def test_get_returns_shared_instance(self):
        _NotesStore._reset()
        try:
            assert _NotesStore.get() is _NotesStore.get()
        finally:
            _NotesStore._reset()
