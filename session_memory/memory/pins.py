"""PinStore — persistence for semantic pins."""

from __future__ import annotations

import logging

from session_memory.db import SqlStore
from session_memory.memory.models import SemanticPin

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS semantic_pins (
    id                TEXT PRIMARY KEY,
    session_id        TEXT NOT NULL,
    content           TEXT NOT NULL,
    source_message_id INTEGER,
    importance_score  REAL NOT NULL DEFAULT 0.8,
    pin_type          TEXT NOT NULL DEFAULT 'manual',
    created_at        TEXT NOT NULL
)
"""

_COLUMNS = "id, session_id, content, source_message_id, importance_score, pin_type, created_at"


class PinStore(SqlStore):
    """Persists semantic pins in SQLite / Turso."""

    _schema = (_CREATE_TABLE,)

    async def add(self, pin: SemanticPin) -> SemanticPin:
        """Insert a new pin. Returns the same object."""
        async with self._session() as db:
            await db.execute(
                f"INSERT INTO semantic_pins ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                pin.to_row(),
            )
            await db.commit()
        logger.info(
            "Pinned [%s/%.2f] for session %s: %s",
            pin.pin_type,
            pin.importance_score,
            pin.session_id,
            pin.content[:80],
        )
        return pin

    async def list_top(self, session_id: str, limit: int) -> list[SemanticPin]:
        """Highest importance first; newer pins win ties."""
        if limit <= 0:
            return []
        async with self._session() as db:
            rows = await db.fetchall(
                f"""
                SELECT {_COLUMNS} FROM semantic_pins
                WHERE session_id = ?
                ORDER BY importance_score DESC, created_at DESC
                LIMIT ?
                """,
                (session_id, limit),
            )
        return [SemanticPin.from_row(row) for row in rows]

    async def count(self, session_id: str) -> int:
        async with self._session() as db:
            row = await db.fetchone(
                "SELECT COUNT(*) FROM semantic_pins WHERE session_id = ?",
                (session_id,),
            )
        return int(row[0]) if row else 0

    async def delete(self, pin_id: str) -> bool:
        """Delete a pin. Returns True if a row was removed."""
        async with self._session() as db:
            cursor = await db.execute("DELETE FROM semantic_pins WHERE id = ?", (pin_id,))
            await db.commit()
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Deleted pin: %s", pin_id)
        return deleted
