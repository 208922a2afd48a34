"""Token estimation for context budgeting.

The assembler only depends on the :class:`TokenEstimator` protocol, so the
character heuristic can be swapped for a real tokenizer later.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from session_memory.memory.models import Message, SemanticPin, Summary


class TokenEstimator(Protocol):
    def estimate(self, texts: Iterable[str]) -> int:
        """Estimated token cost of *texts* taken together."""
        ...


class CharRatioEstimator:
    """Approximates tokens as ``total_characters // chars_per_token``."""

    def __init__(self, chars_per_token: int = 4) -> None:
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def estimate(self, texts: Iterable[str]) -> int:
        total_chars = sum(len(t) for t in texts if t)
        return total_chars // self.chars_per_token


def composition_texts(
    messages: Iterable[Message],
    pins: Iterable[SemanticPin],
    summaries: Iterable[Summary],
) -> list[str]:
    """Flatten a context composition into the texts that cost tokens."""
    texts = [m.text for m in messages]
    texts.extend(p.content for p in pins)
    texts.extend(s.summary_text for s in summaries)
    return texts
