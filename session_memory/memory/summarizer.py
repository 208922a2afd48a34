"""Summarizer gateway: turns a run of messages into prose.

The engine depends only on the :class:`Summarizer` protocol.
:class:`AnthropicSummarizer` is the production implementation; every failure
(API error, timeout, empty or implausible reply) is raised as
:class:`~session_memory.errors.SummarizationError`.

:func:`fallback_summary` is a deterministic, model-free summary that callers
can persist when summarization fails.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

import anthropic

from session_memory.config import settings
from session_memory.errors import SummarizationError

if TYPE_CHECKING:
    from session_memory.memory.models import Message

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = """You summarize conversations between a person and a health-support assistant.
Write a concise summary that preserves:
1. Key health, mood and wellbeing topics discussed
2. Treatment details (medications, dosages, appointments, providers)
3. Family and caregiving concerns
4. Decisions, insights and open follow-ups

Only summarize what was said; do not add new content. Plain prose, no headers, under 300 words."""

MAX_SUMMARY_CHARS = 500
MAX_SUMMARY_RATIO = 0.5
MIN_WORD_OVERLAP = 0.05

_GENERATED_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^(Here's|Here is|Certainly|Sure|Let me|I'll create|I can)\b", re.IGNORECASE),
    re.compile(r"```"),
    re.compile(r"^(Chapter|Scene|Act [IVX]+)\b", re.IGNORECASE),
)


class Summarizer(Protocol):
    async def summarize(self, messages: Sequence[Message]) -> str:
        """Return prose summarizing *messages* (oldest first)."""
        ...


def format_transcript(messages: Sequence[Message]) -> str:
    """Render messages as ``role: text`` lines."""
    return "\n".join(f"{m.role}: {m.text}" for m in messages)


def rejection_reason(summary: str, messages: Sequence[Message]) -> str | None:
    """Why *summary* looks like generated content rather than a summary, or None."""
    if len(summary) > MAX_SUMMARY_CHARS:
        return f"too long ({len(summary)} chars)"

    source_chars = sum(len(m.text) for m in messages)
    if source_chars and len(summary) / source_chars > MAX_SUMMARY_RATIO:
        return f"longer than {MAX_SUMMARY_RATIO:.0%} of the conversation"

    for pattern in _GENERATED_PATTERNS:
        if pattern.search(summary):
            return f"matches {pattern.pattern!r}"

    words = summary.lower().split()
    source = " ".join(m.text for m in messages).lower()
    if words:
        overlap = sum(1 for w in words if len(w) > 3 and w in source) / len(words)
        if overlap < MIN_WORD_OVERLAP:
            return f"low word overlap ({overlap:.1%})"
    return None


class AnthropicSummarizer:
    """Summarizes with a Claude model via the Anthropic async client."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout_seconds: float | None = None,
        validate: bool = True,
    ) -> None:
        self._client = client
        self.model = model or settings.summary_model
        self.max_tokens = max_tokens or settings.summary_max_tokens
        self.timeout_seconds = timeout_seconds or settings.summary_timeout_seconds
        self.validate = validate

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        return self._client

    async def summarize(self, messages: Sequence[Message]) -> str:
        if not messages:
            raise SummarizationError("No messages to summarize")

        client = self._get_client()
        try:
            response = await asyncio.wait_for(
                client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=0.1,
                    system=SUMMARY_SYSTEM_PROMPT,
                    messages=[{
                        "role": "user",
                        "content": f"Please summarize this conversation:\n\n{format_transcript(messages)}",
                    }],
                ),
                timeout=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise SummarizationError(
                f"Summarizer timed out after {self.timeout_seconds:.0f}s"
            ) from exc
        except anthropic.APIError as exc:
            raise SummarizationError(f"Summarizer request failed: {exc}") from exc

        text = "".join(
            getattr(block, "text", "") for block in response.content
        ).strip()
        if not text:
            raise SummarizationError("Summarizer returned an empty reply")

        if self.validate:
            reason = rejection_reason(text, messages)
            if reason:
                logger.warning("Rejected model summary: %s", reason)
                raise SummarizationError(f"Reply is not a summary: {reason}")
        return text


# -- Deterministic fallback ------------------------------------------------------

_TOPIC_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("crisis support", ("crisis", "emergency", "urgent")),
    ("allergies", ("allergy", "allergic")),
    ("medication management", ("medication", "prescription", "dosage", "side effect")),
    ("healthcare appointments", ("appointment", "doctor", "visit")),
    ("symptom tracking", ("symptom", "pain", "reaction")),
    ("anxiety", ("anxiety", "anxious", "worried", "panic")),
    ("depression", ("depression", "sad", "hopeless")),
    ("stress management", ("stress", "overwhelmed", "pressure")),
    ("therapy", ("therapy", "counseling", "therapist")),
    ("family caregiving", ("family", "caregiver", "caring for", "mother", "father")),
    ("sleep issues", ("sleep", "insomnia", "tired")),
    ("coping strategies", ("coping", "strategy", "technique")),
    ("troubleshooting", ("bug", "error", "fix")),
)

MAX_FALLBACK_TOPICS = 4


def extract_topics(messages: Sequence[Message], limit: int = MAX_FALLBACK_TOPICS) -> list[str]:
    """Topic labels detected in the user's messages, in priority order."""
    user_text = " ".join(m.text.lower() for m in messages if m.role == "user")
    topics = [
        label for label, keywords in _TOPIC_KEYWORDS if any(k in user_text for k in keywords)
    ]
    return topics[:limit]


def fallback_summary(messages: Sequence[Message]) -> str:
    """Model-free summary of *messages* for use when summarization fails."""
    if not messages:
        return "No messages to summarize."

    total = len(messages)
    users = sum(1 for m in messages if m.role == "user")
    assistants = sum(1 for m in messages if m.role == "assistant")
    topics = extract_topics(messages)
    if topics:
        return (
            f"Conversation with {total} messages ({users} user, {assistants} assistant) "
            f"about: {', '.join(topics)}."
        )

    user_texts = [m.text for m in messages if m.role == "user"]
    first = user_texts[0][:30] if user_texts else "N/A"
    last = user_texts[-1][:30] if user_texts else "N/A"
    return f'Conversation with {total} messages. Started with: "{first}..." Recent topic: "{last}..."'
