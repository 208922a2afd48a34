"""Short-TTL cache in front of the message store.

Two lookups are cached per session:

- the recent-message window, keyed by ``(session_id, limit)``
- the total message count, keyed by ``session_id``

Writes to the store are not propagated; they become visible once the entry
expires.  Two concurrent misses for the same key both query the store and
the later one wins, which costs a redundant read and nothing else.

Every miss also drops expired entries for all sessions, so idle sessions
do not accumulate.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from session_memory.config import settings

if TYPE_CHECKING:
    from session_memory.memory.messages import MessageStore
    from session_memory.memory.models import Message

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    stored_at: float


class RecencyCache:
    """Per-session TTL cache over :class:`MessageStore` reads.

    Owned by whoever constructs it; there is no module-level instance.
    The internal map is guarded by a lock that is never held across an
    ``await``, so the cache is safe to share between tasks and threads.
    """

    def __init__(
        self,
        store: MessageStore,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self.ttl_seconds = settings.recency_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, Hashable], _Entry] = {}
        self._lock = threading.Lock()

    # -- Public lookups --------------------------------------------------------

    async def get_recent_messages(self, session_id: str, limit: int) -> list[Message]:
        """The *limit* newest messages of a session, oldest first."""
        messages = await self._get_or_fetch(
            (session_id, ("recent", limit)),
            lambda: self._store.read_recent(session_id, limit),
        )
        return list(messages)

    async def get_message_count(self, session_id: str) -> int:
        """Total number of messages in a session."""
        return await self._get_or_fetch(
            (session_id, "count"),
            lambda: self._store.count(session_id),
        )

    # -- Maintenance -----------------------------------------------------------

    def invalidate(self, session_id: str) -> int:
        """Drop every entry for *session_id*. Returns the number removed."""
        with self._lock:
            keys = [k for k in self._entries if k[0] == session_id]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def prune(self) -> int:
        """Drop expired entries. Returns the number removed."""
        with self._lock:
            removed = self._drop_expired(self._clock())
        if removed:
            logger.debug("Pruned %d expired cache entries", removed)
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -- Internal helpers ------------------------------------------------------

    def _is_fresh(self, entry: _Entry, now: float) -> bool:
        return now - entry.stored_at < self.ttl_seconds

    def _drop_expired(self, now: float) -> int:
        # Caller holds self._lock.
        expired = [k for k, e in self._entries.items() if not self._is_fresh(e, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def _get_or_fetch(
        self,
        key: tuple[str, Hashable],
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        with self._lock:
            entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry, self._clock()):
            logger.debug("Recency cache hit: %s", key)
            return entry.value

        logger.debug("Recency cache miss: %s", key)
        value = await fetch()
        now = self._clock()
        with self._lock:
            self._drop_expired(now)
            self._entries[key] = _Entry(value=value, stored_at=now)
        return value
