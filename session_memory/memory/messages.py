"""MessageStore — read/update access to a session's ordered message log.

Messages are written by the chat handler; the memory engine only reads
them and rewrites ``importance_score``.
"""

from __future__ import annotations

import logging

from session_memory.db import SqlStore
from session_memory.errors import StoreError, ValidationError
from session_memory.memory.models import ROLES, MemoryStats, Message, utc_now

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS messages (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id       TEXT NOT NULL,
    role             TEXT NOT NULL,
    text             TEXT NOT NULL,
    model_id         TEXT,
    token_usage      INTEGER,
    importance_score REAL NOT NULL DEFAULT 0.5,
    created_at       TEXT NOT NULL
)
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_messages_session ON messages (session_id, id)
"""

_COLUMNS = "id, session_id, role, text, model_id, token_usage, importance_score, created_at"


class MessageStore(SqlStore):
    """Persists conversation messages in SQLite / Turso."""

    _schema = (_CREATE_TABLE, _CREATE_INDEX)

    # -- Write ---------------------------------------------------------------

    async def add_message(
        self,
        session_id: str,
        role: str,
        text: str,
        model_id: str | None = None,
        token_usage: int | None = None,
        importance_score: float = 0.5,
    ) -> Message:
        """Append a message to a session. Returns it with its assigned id."""
        if role not in ROLES:
            raise ValidationError(f"Unknown message role: {role!r}")
        created_at = utc_now()
        async with self._session() as db:
            cursor = await db.execute(
                """
                INSERT INTO messages
                    (session_id, role, text, model_id, token_usage, importance_score, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (session_id, role, text, model_id, token_usage, importance_score, created_at),
            )
            await db.commit()
            message_id = cursor.lastrowid
        if message_id is None:
            raise StoreError("MessageStore: insert returned no row id")
        return Message(
            id=message_id,
            session_id=session_id,
            role=role,
            text=text,
            model_id=model_id,
            token_usage=token_usage,
            importance_score=importance_score,
            created_at=created_at,
        )

    async def update_importance(self, message_id: int, score: float) -> bool:
        """Overwrite a message's importance score. Returns True if a row changed."""
        async with self._session() as db:
            cursor = await db.execute(
                "UPDATE messages SET importance_score = ? WHERE id = ?",
                (score, message_id),
            )
            await db.commit()
            return cursor.rowcount > 0

    # -- Read ----------------------------------------------------------------

    async def read_recent(self, session_id: str, limit: int) -> list[Message]:
        """Return the *limit* newest messages, oldest first."""
        if limit <= 0:
            return []
        async with self._session() as db:
            rows = await db.fetchall(
                f"""
                SELECT * FROM (
                    SELECT {_COLUMNS} FROM messages
                    WHERE session_id = ?
                    ORDER BY id DESC
                    LIMIT ?
                ) ORDER BY id ASC
                """,
                (session_id, limit),
            )
        return [Message.from_row(row) for row in rows]

    async def read_range(self, session_id: str, start_id: int, end_id: int) -> list[Message]:
        """Return messages with ``start_id <= id <= end_id``, oldest first."""
        async with self._session() as db:
            rows = await db.fetchall(
                f"""
                SELECT {_COLUMNS} FROM messages
                WHERE session_id = ? AND id BETWEEN ? AND ?
                ORDER BY id ASC
                """,
                (session_id, start_id, end_id),
            )
        return [Message.from_row(row) for row in rows]

    async def read_after(
        self, session_id: str, after_id: int = 0, limit: int | None = None
    ) -> list[Message]:
        """Return messages newer than *after_id*, oldest first."""
        sql = f"""
            SELECT {_COLUMNS} FROM messages
            WHERE session_id = ? AND id > ?
            ORDER BY id ASC
        """
        params: tuple = (session_id, after_id)
        if limit is not None:
            sql += " LIMIT ?"
            params = (*params, limit)
        async with self._session() as db:
            rows = await db.fetchall(sql, params)
        return [Message.from_row(row) for row in rows]

    async def count(self, session_id: str, after_id: int | None = None) -> int:
        """Count a session's messages, optionally only those after *after_id*."""
        async with self._session() as db:
            if after_id is None:
                row = await db.fetchone(
                    "SELECT COUNT(*) FROM messages WHERE session_id = ?", (session_id,)
                )
            else:
                row = await db.fetchone(
                    "SELECT COUNT(*) FROM messages WHERE session_id = ? AND id > ?",
                    (session_id, after_id),
                )
        return int(row[0]) if row else 0

    async def stats(self, session_id: str) -> MemoryStats:
        """Message-side aggregates; summary and pin totals are left at zero."""
        async with self._session() as db:
            row = await db.fetchone(
                """
                SELECT COUNT(*), MIN(created_at), MAX(created_at), AVG(importance_score)
                FROM messages WHERE session_id = ?
                """,
                (session_id,),
            )
        if not row or not row[0]:
            return MemoryStats()
        return MemoryStats(
            total_messages=int(row[0]),
            oldest_message_at=row[1],
            newest_message_at=row[2],
            average_importance=round(float(row[3] or 0.0), 4),
        )
