"""Tests for RecencyCache — TTL behaviour over a counting fake store."""

import asyncio

import pytest

from session_memory.memory.cache import RecencyCache
from session_memory.memory.models import Message


class _CountingStore:
    """Stands in for MessageStore and counts reads."""

    def __init__(self) -> None:
        self.messages: dict[str, list[Message]] = {}
        self.recent_calls = 0
        self.count_calls = 0

    def add(self, session_id: str, text: str) -> None:
        log = self.messages.setdefault(session_id, [])
        log.append(Message(id=len(log) + 1, session_id=session_id, role="user", text=text))

    async def read_recent(self, session_id: str, limit: int) -> list[Message]:
        self.recent_calls += 1
        return list(self.messages.get(session_id, [])[-limit:])

    async def count(self, session_id: str) -> int:
        self.count_calls += 1
        return len(self.messages.get(session_id, []))


@pytest.fixture
def store() -> _CountingStore:
    s = _CountingStore()
    for i in range(5):
        s.add("s1", f"m{i + 1}")
    return s


@pytest.fixture
def cache(store: _CountingStore, clock) -> RecencyCache:
    return RecencyCache(store, ttl_seconds=5.0, clock=clock)


# -- get_recent_messages -----------------------------------------------------


async def test_recent_hit_within_ttl(cache: RecencyCache, store: _CountingStore, clock) -> None:
    first = await cache.get_recent_messages("s1", 3)
    clock.advance(4.9)
    second = await cache.get_recent_messages("s1", 3)

    assert [m.text for m in first] == ["m3", "m4", "m5"]
    assert second == first
    assert store.recent_calls == 1


async def test_recent_miss_after_ttl(cache: RecencyCache, store: _CountingStore, clock) -> None:
    await cache.get_recent_messages("s1", 3)
    clock.advance(5.0)
    await cache.get_recent_messages("s1", 3)
    assert store.recent_calls == 2


async def test_recent_may_be_stale_within_ttl(
    cache: RecencyCache, store: _CountingStore, clock
) -> None:
    await cache.get_recent_messages("s1", 3)
    store.add("s1", "m6")

    clock.advance(1.0)
    stale = await cache.get_recent_messages("s1", 3)
    assert stale[-1].text == "m5"

    clock.advance(5.0)
    fresh = await cache.get_recent_messages("s1", 3)
    assert fresh[-1].text == "m6"


async def test_recent_keyed_by_limit(cache: RecencyCache, store: _CountingStore) -> None:
    assert len(await cache.get_recent_messages("s1", 2)) == 2
    assert len(await cache.get_recent_messages("s1", 4)) == 4
    assert store.recent_calls == 2


async def test_recent_keyed_by_session(cache: RecencyCache, store: _CountingStore) -> None:
    store.add("s2", "other")
    assert [m.text for m in await cache.get_recent_messages("s2", 3)] == ["other"]
    assert len(await cache.get_recent_messages("s1", 3)) == 3
    assert store.recent_calls == 2


async def test_returned_list_is_a_copy(cache: RecencyCache) -> None:
    first = await cache.get_recent_messages("s1", 3)
    first.clear()
    assert len(await cache.get_recent_messages("s1", 3)) == 3


async def test_zero_ttl_always_reads(store: _CountingStore, clock) -> None:
    cache = RecencyCache(store, ttl_seconds=0, clock=clock)
    await cache.get_recent_messages("s1", 3)
    await cache.get_recent_messages("s1", 3)
    assert store.recent_calls == 2


# -- get_message_count -------------------------------------------------------


async def test_count_cached(cache: RecencyCache, store: _CountingStore, clock) -> None:
    assert await cache.get_message_count("s1") == 5
    store.add("s1", "m6")
    assert await cache.get_message_count("s1") == 5
    clock.advance(6)
    assert await cache.get_message_count("s1") == 6
    assert store.count_calls == 2


async def test_count_unknown_session(cache: RecencyCache) -> None:
    assert await cache.get_message_count("nobody") == 0


async def test_concurrent_lookups(cache: RecencyCache) -> None:
    results = await asyncio.gather(*(cache.get_recent_messages("s1", 3) for _ in range(10)))
    assert all([m.text for m in r] == ["m3", "m4", "m5"] for r in results)


# -- invalidate / prune ------------------------------------------------------


async def test_invalidate_session(cache: RecencyCache, store: _CountingStore) -> None:
    store.add("s2", "other")
    await cache.get_recent_messages("s1", 3)
    await cache.get_message_count("s1")
    await cache.get_message_count("s2")

    assert cache.invalidate("s1") == 2
    assert len(cache) == 1

    await cache.get_recent_messages("s1", 3)
    assert store.recent_calls == 2


async def test_prune_drops_expired(cache: RecencyCache, clock) -> None:
    await cache.get_recent_messages("s1", 3)
    clock.advance(3)
    await cache.get_message_count("s1")
    clock.advance(3)

    assert cache.prune() == 1
    assert len(cache) == 1


async def test_miss_drops_expired_entries_of_other_sessions(
    cache: RecencyCache, store: _CountingStore, clock
) -> None:
    store.add("s2", "other")
    await cache.get_recent_messages("s1", 3)
    await cache.get_message_count("s2")
    assert len(cache) == 2

    clock.advance(6)
    await cache.get_message_count("s3")

    assert len(cache) == 1
    assert cache.prune() == 0


async def test_map_stays_bounded_across_idle_sessions(cache: RecencyCache, clock) -> None:
    for i in range(50):
        await cache.get_message_count(f"session-{i}")
        clock.advance(6)
    assert len(cache) == 1


def test_default_ttl_from_settings(store: _CountingStore) -> None:
    assert RecencyCache(store).ttl_seconds == 5.0
