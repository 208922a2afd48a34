"""Data models for conversation memory."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant", "system"]
PinType = Literal["manual", "auto", "code", "concept", "system"]

ROLES: tuple[str, ...] = ("user", "assistant", "system")
PIN_TYPES: tuple[str, ...] = ("manual", "auto", "code", "concept", "system")


def utc_now() -> str:
    """Current time as an ISO 8601 UTC string."""
    return datetime.now(UTC).isoformat()


def make_id() -> str:
    """Generate a new summary or pin ID."""
    return uuid.uuid4().hex


class Message(BaseModel):
    """One turn in a conversation.

    ``id`` increases monotonically within a session, so id order is
    chronological order.  Only ``importance_score`` changes after creation.
    """

    id: int
    session_id: str
    role: Role
    text: str
    model_id: str | None = None
    token_usage: int | None = Field(default=None, ge=0)
    importance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    created_at: str = Field(default_factory=utc_now)

    @classmethod
    def from_row(cls, row: tuple) -> Message:
        """Deserialize from a ``messages`` row tuple."""
        return cls(
            id=row[0],
            session_id=row[1],
            role=row[2],
            text=row[3] or "",
            model_id=row[4],
            token_usage=row[5],
            importance_score=row[6] if row[6] is not None else 0.5,
            created_at=row[7],
        )


class Summary(BaseModel):
    """Compressed representation of the messages ``start_message_id..end_message_id``."""

    id: str = Field(default_factory=make_id)
    session_id: str
    summary_text: str
    message_count: int = Field(gt=0)
    start_message_id: int
    end_message_id: int
    importance_score: float = Field(default=0.7, ge=0.0, le=1.0)
    created_at: str = Field(default_factory=utc_now)

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``conversation_summaries`` column order."""
        return (
            self.id,
            self.session_id,
            self.summary_text,
            self.message_count,
            self.start_message_id,
            self.end_message_id,
            self.importance_score,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> Summary:
        return cls(
            id=row[0],
            session_id=row[1],
            summary_text=row[2],
            message_count=row[3],
            start_message_id=row[4],
            end_message_id=row[5],
            importance_score=row[6],
            created_at=row[7],
        )


class SemanticPin(BaseModel):
    """A durable fact that survives context truncation."""

    id: str = Field(default_factory=make_id)
    session_id: str
    content: str
    source_message_id: int | None = None
    importance_score: float = Field(default=0.8, ge=0.0, le=1.0)
    pin_type: PinType = "manual"
    created_at: str = Field(default_factory=utc_now)

    def to_row(self) -> tuple:
        """Serialize to a tuple matching the ``semantic_pins`` column order."""
        return (
            self.id,
            self.session_id,
            self.content,
            self.source_message_id,
            self.importance_score,
            self.pin_type,
            self.created_at,
        )

    @classmethod
    def from_row(cls, row: tuple) -> SemanticPin:
        return cls(
            id=row[0],
            session_id=row[1],
            content=row[2],
            source_message_id=row[3],
            importance_score=row[4],
            pin_type=row[5],
            created_at=row[6],
        )


class MemoryContext(BaseModel):
    """Per-request context handed to the language model.  Never persisted.

    Attributes:
        recent_messages: Chronological (oldest first).
        semantic_pins: Highest importance first.
        summaries: Most recent first.
        estimated_tokens: Estimated cost of the whole composition.
    """

    recent_messages: list[Message] = Field(default_factory=list)
    semantic_pins: list[SemanticPin] = Field(default_factory=list)
    summaries: list[Summary] = Field(default_factory=list)
    estimated_tokens: int = Field(default=0, ge=0)

    @property
    def is_empty(self) -> bool:
        return not (self.recent_messages or self.semantic_pins or self.summaries)

    def to_api_messages(self) -> list[dict[str, str]]:
        """Format the recent messages for the Claude API."""
        return [
            {"role": m.role, "content": m.text}
            for m in self.recent_messages
            if m.role != "system"
        ]


class MemoryStats(BaseModel):
    """Aggregate counters for one session."""

    total_messages: int = 0
    total_summaries: int = 0
    total_pins: int = 0
    oldest_message_at: str | None = None
    newest_message_at: str | None = None
    average_importance: float = 0.0
