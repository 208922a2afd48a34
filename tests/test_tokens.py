"""Tests for token estimation."""

import pytest

from session_memory.memory.models import Message, SemanticPin, Summary
from session_memory.memory.tokens import CharRatioEstimator, composition_texts


class TestCharRatioEstimator:
    def test_total_chars_divided(self):
        assert CharRatioEstimator(4).estimate(["abcd", "efgh"]) == 2

    def test_floors_over_combined_text(self):
        # 3 + 3 chars = 6 // 4 = 1, not 0 + 0
        assert CharRatioEstimator(4).estimate(["abc", "def"]) == 1

    def test_empty(self):
        assert CharRatioEstimator().estimate([]) == 0
        assert CharRatioEstimator().estimate(["", ""]) == 0

    def test_accepts_generator(self):
        assert CharRatioEstimator(2).estimate(t for t in ("ab", "cd")) == 2

    def test_rejects_non_positive_ratio(self):
        with pytest.raises(ValueError, match="positive"):
            CharRatioEstimator(0)


def test_composition_texts_covers_every_part():
    messages = [Message(id=1, session_id="s", role="user", text="hello")]
    pins = [SemanticPin(session_id="s", content="fact")]
    summaries = [
        Summary(
            session_id="s",
            summary_text="recap",
            message_count=1,
            start_message_id=1,
            end_message_id=1,
        )
    ]
    assert composition_texts(messages, pins, summaries) == ["hello", "fact", "recap"]
