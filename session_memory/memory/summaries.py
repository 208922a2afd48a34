"""SummaryStore — append/read persistence for conversation summaries.

Ranges are stored as given; overlapping or gapped ranges are not rejected.
"""

from __future__ import annotations

import logging

from session_memory.db import SqlStore
from session_memory.memory.models import Summary

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS conversation_summaries (
    id               TEXT PRIMARY KEY,
    session_id       TEXT NOT NULL,
    summary          TEXT NOT NULL,
    message_count    INTEGER NOT NULL,
    start_message_id INTEGER NOT NULL,
    end_message_id   INTEGER NOT NULL,
    importance_score REAL NOT NULL DEFAULT 0.7,
    created_at       TEXT NOT NULL
)
"""

_COLUMNS = (
    "id, session_id, summary, message_count, start_message_id, "
    "end_message_id, importance_score, created_at"
)


class SummaryStore(SqlStore):
    """Persists conversation summaries in SQLite / Turso."""

    _schema = (_CREATE_TABLE,)

    async def add(self, summary: Summary) -> Summary:
        """Insert a new summary. Returns the same object."""
        async with self._session() as db:
            await db.execute(
                f"INSERT INTO conversation_summaries ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                summary.to_row(),
            )
            await db.commit()
        logger.info(
            "Stored summary %s for session %s (messages %d-%d)",
            summary.id,
            summary.session_id,
            summary.start_message_id,
            summary.end_message_id,
        )
        return summary

    async def list_recent(self, session_id: str, limit: int) -> list[Summary]:
        """Most recent summaries first."""
        if limit <= 0:
            return []
        async with self._session() as db:
            rows = await db.fetchall(
                f"""
                SELECT {_COLUMNS} FROM conversation_summaries
                WHERE session_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (session_id, limit),
            )
        return [Summary.from_row(row) for row in rows]

    async def get_latest(self, session_id: str) -> Summary | None:
        """The summary reaching furthest into the conversation, or None."""
        async with self._session() as db:
            row = await db.fetchone(
                f"""
                SELECT {_COLUMNS} FROM conversation_summaries
                WHERE session_id = ?
                ORDER BY end_message_id DESC, created_at DESC
                LIMIT 1
                """,
                (session_id,),
            )
        return Summary.from_row(row) if row else None

    async def count(self, session_id: str) -> int:
        async with self._session() as db:
            row = await db.fetchone(
                "SELECT COUNT(*) FROM conversation_summaries WHERE session_id = ?",
                (session_id,),
            )
        return int(row[0]) if row else 0
