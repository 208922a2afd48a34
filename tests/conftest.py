"""Shared test fixtures."""

from collections.abc import Sequence
from pathlib import Path

import pytest

from session_memory.memory.cache import RecencyCache
from session_memory.memory.messages import MessageStore
from session_memory.memory.models import Message
from session_memory.memory.pins import PinStore
from session_memory.memory.service import ConversationMemory
from session_memory.memory.summaries import SummaryStore


class FakeSummarizer:
    """Summarizer double that records calls and returns a canned reply."""

    def __init__(self, reply: str = "They discussed the plan.", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[list[Message]] = []

    async def summarize(self, messages: Sequence[Message]) -> str:
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        return self.reply


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("session_memory.config.settings.turso_database_url", "")


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture
def message_store(db_path: Path, _no_turso: None) -> MessageStore:
    return MessageStore(db_path=db_path)


@pytest.fixture
def summary_store(db_path: Path, _no_turso: None) -> SummaryStore:
    return SummaryStore(db_path=db_path)


@pytest.fixture
def pin_store(db_path: Path, _no_turso: None) -> PinStore:
    return PinStore(db_path=db_path)


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory(
    message_store: MessageStore,
    summary_store: SummaryStore,
    pin_store: PinStore,
    summarizer: FakeSummarizer,
) -> ConversationMemory:
    """Engine over temp-database stores with caching disabled (TTL 0)."""
    return ConversationMemory(
        messages=message_store,
        summaries=summary_store,
        pins=pin_store,
        summarizer=summarizer,
        cache=RecencyCache(message_store, ttl_seconds=0),
        summary_threshold=15,
    )


@pytest.fixture
def add_turns(message_store: MessageStore):
    """Append *count* alternating user/assistant messages to a session."""

    async def _add(session_id: str, count: int, text: str = "turn") -> list[Message]:
        added = []
        for i in range(count):
            role = "user" if i % 2 == 0 else "assistant"
            added.append(await message_store.add_message(session_id, role, f"{text} {i + 1}"))
        return added

    return _add
