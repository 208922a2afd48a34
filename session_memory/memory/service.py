"""ConversationMemory — the entry point used by chat-turn handlers.

Wires the message store, recency cache, pin and summary stores, the
summarizer gateway and the context assembler together.

Typical turn::

    memory = ConversationMemory.from_settings()
    context = await memory.build_context(session_id)
    ...  # call the model, store the reply
    if await memory.needs_summarization(session_id):
        asyncio.create_task(summarize_or_fall_back(...))

``create_summary`` is a plain awaitable that may take seconds; detaching it
from the response path is the caller's decision.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from session_memory.config import settings
from session_memory.errors import EmptyRangeError, SummarizationError, ValidationError
from session_memory.memory.assembler import ContextAssembler
from session_memory.memory.cache import RecencyCache
from session_memory.memory.messages import MessageStore
from session_memory.memory.models import (
    PIN_TYPES,
    MemoryContext,
    MemoryStats,
    Message,
    SemanticPin,
    Summary,
)
from session_memory.memory.pins import PinStore
from session_memory.memory.scoring import score_message, score_text
from session_memory.memory.summaries import SummaryStore
from session_memory.memory.summarizer import AnthropicSummarizer, Summarizer, fallback_summary

if TYPE_CHECKING:
    from session_memory.memory.tokens import TokenEstimator

logger = logging.getLogger(__name__)


def _check_score(value: float | None, name: str) -> None:
    if value is not None and not 0.0 <= value <= 1.0:
        raise ValidationError(f"{name} must be between 0 and 1, got {value}")


class ConversationMemory:
    """Scores, summarizes, pins and assembles context for chat sessions."""

    def __init__(
        self,
        messages: MessageStore,
        summaries: SummaryStore,
        pins: PinStore,
        summarizer: Summarizer,
        cache: RecencyCache | None = None,
        estimator: TokenEstimator | None = None,
        summary_threshold: int | None = None,
    ) -> None:
        self.messages = messages
        self.summaries = summaries
        self.pins = pins
        self.summarizer = summarizer
        self.cache = cache or RecencyCache(messages)
        self.summary_threshold = (
            summary_threshold if summary_threshold is not None else settings.summary_threshold
        )
        self.assembler = ContextAssembler(self.cache, pins, summaries, estimator=estimator)

    @classmethod
    def from_settings(cls) -> ConversationMemory:
        """Build an engine over the shared stores and the Anthropic summarizer."""
        return cls(
            messages=MessageStore.get(),
            summaries=SummaryStore.get(),
            pins=PinStore.get(),
            summarizer=AnthropicSummarizer(),
        )

    # -- Scoring -----------------------------------------------------------------

    @staticmethod
    def score(message: Message) -> float:
        """Importance of *message* in ``[0, 1]``; never raises."""
        return score_message(message)

    async def record_message(
        self,
        session_id: str,
        role: str,
        text: str,
        model_id: str | None = None,
        token_usage: int | None = None,
    ) -> Message:
        """Append a turn with its importance score already computed."""
        return await self.messages.add_message(
            session_id,
            role,
            text,
            model_id=model_id,
            token_usage=token_usage,
            importance_score=score_text(text, role),
        )

    async def rescore_session(self, session_id: str, limit: int = 1000) -> int:
        """Re-score up to *limit* recent messages and persist changed scores."""
        recent = await self.messages.read_recent(session_id, limit)
        updated = 0
        for message in recent:
            score = score_message(message)
            if score != message.importance_score:
                await self.messages.update_importance(message.id, score)
                updated += 1
        logger.info("Rescored %d of %d messages in session %s", updated, len(recent), session_id)
        return updated

    # -- Context -----------------------------------------------------------------

    async def build_context(self, session_id: str, max_tokens: int | None = None) -> MemoryContext:
        """Bounded context for one model call (default budget from settings)."""
        return await self.assembler.build_context(session_id, max_tokens)

    # -- Summaries ---------------------------------------------------------------

    async def create_summary(
        self,
        session_id: str,
        start_message_id: int,
        end_message_id: int,
        message_count: int,
        importance_score: float | None = None,
    ) -> Summary:
        """Summarize messages ``start..end`` and persist the result.

        Raises:
            ValidationError: Bad session id, range, count or score.
            EmptyRangeError: No messages in the range.
            SummarizationError: The summarizer failed, timed out or returned
                blank text.  Nothing is persisted.
        """
        messages = await self._summary_source(
            session_id, start_message_id, end_message_id, message_count, importance_score
        )
        try:
            text = await self.summarizer.summarize(messages)
        except SummarizationError:
            raise
        except Exception as exc:
            raise SummarizationError(f"Summarizer failed: {exc!r}") from exc
        if not text or not text.strip():
            raise SummarizationError("Summarizer returned an empty summary")
        return await self._store_summary(
            session_id, start_message_id, end_message_id, message_count, importance_score, text
        )

    async def create_fallback_summary(
        self,
        session_id: str,
        start_message_id: int,
        end_message_id: int,
        message_count: int,
        importance_score: float | None = None,
    ) -> Summary:
        """Persist a model-free summary for a range, for use after a SummarizationError."""
        messages = await self._summary_source(
            session_id, start_message_id, end_message_id, message_count, importance_score
        )
        return await self._store_summary(
            session_id,
            start_message_id,
            end_message_id,
            message_count,
            importance_score,
            fallback_summary(messages),
        )

    async def needs_summarization(self, session_id: str) -> bool:
        """True once ``summary_threshold`` messages have accumulated since the last summary.

        Counts are read from the store rather than the recency cache so a turn
        that crosses the threshold is seen immediately.  Read errors are
        logged and reported as False.
        """
        try:
            latest = await self.summaries.get_latest(session_id)
            after_id = latest.end_message_id if latest else None
            pending = await self.messages.count(session_id, after_id=after_id)
        except Exception:
            logger.exception("needs_summarization check failed for session %s", session_id)
            return False
        return pending >= self.summary_threshold

    async def auto_summarize(self, session_id: str) -> Summary | None:
        """Summarize the next ``summary_threshold`` messages after the last summary.

        Each call covers at most one batch; a session that fell far behind
        catches up over several calls.  Returns None when nothing is due.
        Summarization errors propagate.
        """
        latest = await self.summaries.get_latest(session_id)
        after_id = latest.end_message_id if latest else 0
        pending = await self.messages.read_after(
            session_id, after_id, limit=self.summary_threshold
        )
        if not pending or len(pending) < self.summary_threshold:
            return None
        return await self.create_summary(
            session_id,
            start_message_id=pending[0].id,
            end_message_id=pending[-1].id,
            message_count=len(pending),
        )

    # -- Pins --------------------------------------------------------------------

    async def create_pin(
        self,
        session_id: str,
        content: str,
        source_message_id: int | None = None,
        importance_score: float | None = None,
        pin_type: str | None = None,
    ) -> SemanticPin:
        """Persist a durable fact for a session.

        Raises:
            ValidationError: Blank content, bad score or unknown pin type.
        """
        if not session_id or not session_id.strip():
            raise ValidationError("session_id is required")
        if not content or not content.strip():
            raise ValidationError("Pin content must not be empty")
        _check_score(importance_score, "importance_score")
        if pin_type is not None and pin_type not in PIN_TYPES:
            raise ValidationError(f"Unknown pin type: {pin_type!r}")

        pin = SemanticPin(
            session_id=session_id,
            content=content.strip(),
            source_message_id=source_message_id,
            importance_score=(
                importance_score if importance_score is not None else settings.default_pin_importance
            ),
            pin_type=pin_type or "manual",
        )
        return await self.pins.add(pin)

    # -- Stats -------------------------------------------------------------------

    async def stats(self, session_id: str) -> MemoryStats:
        """Message, summary and pin totals plus message timestamps and mean importance."""
        message_stats, total_summaries, total_pins = await asyncio.gather(
            self.messages.stats(session_id),
            self.summaries.count(session_id),
            self.pins.count(session_id),
        )
        return message_stats.model_copy(
            update={"total_summaries": total_summaries, "total_pins": total_pins}
        )

    # -- Internal helpers --------------------------------------------------------

    async def _summary_source(
        self,
        session_id: str,
        start_message_id: int,
        end_message_id: int,
        message_count: int,
        importance_score: float | None,
    ) -> list[Message]:
        if not session_id or not session_id.strip():
            raise ValidationError("session_id is required")
        if start_message_id > end_message_id:
            raise ValidationError(
                f"start_message_id {start_message_id} is after end_message_id {end_message_id}"
            )
        if message_count <= 0:
            raise ValidationError("message_count must be positive")
        _check_score(importance_score, "importance_score")

        messages = await self.messages.read_range(session_id, start_message_id, end_message_id)
        if not messages:
            raise EmptyRangeError(
                f"No messages {start_message_id}-{end_message_id} in session {session_id}"
            )
        return messages

    async def _store_summary(
        self,
        session_id: str,
        start_message_id: int,
        end_message_id: int,
        message_count: int,
        importance_score: float | None,
        text: str,
    ) -> Summary:
        summary = Summary(
            session_id=session_id,
            summary_text=text,
            message_count=message_count,
            start_message_id=start_message_id,
            end_message_id=end_message_id,
            importance_score=(
                importance_score
                if importance_score is not None
                else settings.default_summary_importance
            ),
        )
        return await self.summaries.add(summary)
