"""Context assembly under a token budget.

:class:`ContextAssembler` pulls recent messages (through the recency cache),
top pins and recent summaries, then :func:`fit_to_budget` trims the union
until its estimated cost fits ``max_tokens``.

Truncation order:

1. Summaries, least important first (oldest first on ties).
2. Pins, least important first (oldest first on ties), once no summary is
   left, until the remaining pins fit beside the message floor.  A pin the
   budget cannot hold next to the floor is never kept.
3. Messages, oldest first, never going below the floor of most recent
   messages.  The floor is returned even when it exceeds the budget.

A larger budget never yields a smaller estimate.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import TYPE_CHECKING, TypeVar

from session_memory.config import settings
from session_memory.errors import StoreError
from session_memory.memory.models import MemoryContext, Message, SemanticPin, Summary
from session_memory.memory.tokens import CharRatioEstimator, TokenEstimator, composition_texts

if TYPE_CHECKING:
    from session_memory.memory.cache import RecencyCache
    from session_memory.memory.pins import PinStore
    from session_memory.memory.summaries import SummaryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _pin_rank(pin: SemanticPin) -> tuple[float, str]:
    return (pin.importance_score, pin.created_at)


def _summary_rank(summary: Summary) -> tuple[float, str]:
    return (summary.importance_score, summary.created_at)


def fit_to_budget(
    messages: Sequence[Message],
    pins: Sequence[SemanticPin],
    summaries: Sequence[Summary],
    max_tokens: int,
    estimator: TokenEstimator,
    message_floor: int = 3,
) -> MemoryContext:
    """Trim a composition until its estimated cost is within *max_tokens*.

    Input order does not matter.  The result lists messages oldest first,
    pins by descending importance and summaries most recent first.
    """
    kept_messages = sorted(messages, key=lambda m: m.id)
    kept_pins = sorted(pins, key=_pin_rank, reverse=True)
    kept_summaries = sorted(summaries, key=lambda s: s.created_at, reverse=True)

    def cost() -> int:
        return estimator.estimate(composition_texts(kept_messages, kept_pins, kept_summaries))

    for summary in sorted(summaries, key=_summary_rank):
        if cost() <= max_tokens:
            break
        kept_summaries.remove(summary)

    floor = kept_messages[-message_floor:] if message_floor > 0 else []
    for pin in sorted(pins, key=_pin_rank):
        if estimator.estimate(composition_texts(floor, kept_pins, kept_summaries)) <= max_tokens:
            break
        kept_pins.remove(pin)

    while cost() > max_tokens and len(kept_messages) > max(message_floor, 0):
        kept_messages.pop(0)

    estimated = cost()
    if estimated > max_tokens:
        logger.warning(
            "Context over budget after truncation (%d > %d tokens, %d messages, %d pins)",
            estimated,
            max_tokens,
            len(kept_messages),
            len(kept_pins),
        )

    return MemoryContext(
        recent_messages=kept_messages,
        semantic_pins=kept_pins,
        summaries=kept_summaries,
        estimated_tokens=estimated,
    )


class ContextAssembler:
    """Builds a :class:`MemoryContext` for one model call."""

    def __init__(
        self,
        cache: RecencyCache,
        pins: PinStore,
        summaries: SummaryStore,
        estimator: TokenEstimator | None = None,
        recent_limit: int | None = None,
        pin_limit: int | None = None,
        summary_limit: int | None = None,
        message_floor: int | None = None,
        default_max_tokens: int | None = None,
    ) -> None:
        self._cache = cache
        self._pins = pins
        self._summaries = summaries
        self.estimator = estimator or CharRatioEstimator(settings.chars_per_token)
        self.recent_limit = recent_limit if recent_limit is not None else settings.context_recent_limit
        self.pin_limit = pin_limit if pin_limit is not None else settings.context_pin_limit
        self.summary_limit = (
            summary_limit if summary_limit is not None else settings.context_summary_limit
        )
        self.message_floor = (
            message_floor if message_floor is not None else settings.context_message_floor
        )
        self.default_max_tokens = (
            default_max_tokens if default_max_tokens is not None else settings.context_token_limit
        )

    async def build_context(self, session_id: str, max_tokens: int | None = None) -> MemoryContext:
        """Assemble recent messages, pins and summaries within *max_tokens*.

        Read-only and idempotent for a fixed store state.  A session with no
        messages, pins or summaries yields an empty context costing 0 tokens.
        """
        budget = self.default_max_tokens if max_tokens is None else max(max_tokens, 0)

        messages, pins, summaries = await asyncio.gather(
            self._cache.get_recent_messages(session_id, self.recent_limit),
            self._degrade(self._pins.list_top(session_id, self.pin_limit), "pins"),
            self._degrade(self._summaries.list_recent(session_id, self.summary_limit), "summaries"),
        )

        context = fit_to_budget(
            messages,
            pins,
            summaries,
            max_tokens=budget,
            estimator=self.estimator,
            message_floor=self.message_floor,
        )
        logger.debug(
            "Context for %s: %d messages, %d pins, %d summaries, ~%d/%d tokens",
            session_id,
            len(context.recent_messages),
            len(context.semantic_pins),
            len(context.summaries),
            context.estimated_tokens,
            budget,
        )
        return context

    @staticmethod
    async def _degrade(lookup: Awaitable[list[T]], label: str) -> list[T]:
        """Await a pin/summary lookup, treating a store failure as no results."""
        try:
            return await lookup
        except StoreError:
            logger.warning("Could not load %s for context, continuing without them", label)
            return []
