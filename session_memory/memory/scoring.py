"""Heuristic importance scoring for conversation messages.

Scoring is split into two pure steps so each can be tested on its own:

1. :func:`extract_features` turns text into a :class:`MessageFeatures` value.
2. :func:`score_features` adds up weighted signals and clamps to ``[0, 1]``.

No I/O happens here; callers decide whether to persist the result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from session_memory.memory.models import Message

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 0.5
TOP_BAND = 0.8
LONG_MESSAGE_CHARS = 200

# -- Vocabulary ----------------------------------------------------------------

ALERT_TERMS: tuple[str, ...] = (
    "allergy",
    "allergic",
    "anaphylaxis",
    "emergency",
    "crisis",
    "urgent",
    "error",
    "overdose",
    "suicidal",
    "self-harm",
    "can't cope",
    "help me",
    "chest pain",
    "seizure",
)

EMOTIONAL_TERMS: tuple[str, ...] = (
    "feeling",
    "mood",
    "depression",
    "anxiety",
    "stress",
    "worried",
    "overwhelmed",
    "therapy",
    "counseling",
)

TREATMENT_TERMS: tuple[str, ...] = (
    "medication",
    "prescription",
    "dosage",
    "side effect",
    "treatment",
    "doctor",
    "appointment",
)

FAMILY_TERMS: tuple[str, ...] = (
    "mom",
    "mother",
    "dad",
    "father",
    "caregiver",
    "family",
)

CODE_TERMS: tuple[str, ...] = ("```", "function", "class ")

PROBLEM_TERMS: tuple[str, ...] = ("problem", "issue", "bug", "failed")

ACKNOWLEDGEMENTS: frozenset[str] = frozenset({
    "ok",
    "okay",
    "k",
    "kk",
    "yes",
    "yeah",
    "yep",
    "yup",
    "no",
    "nope",
    "sure",
    "thanks",
    "thank you",
    "thx",
    "ty",
    "cool",
    "great",
    "nice",
    "fine",
    "got it",
    "alright",
    "understood",
    "noted",
    "perfect",
    "right",
    "hmm",
})


# -- Features ------------------------------------------------------------------


@dataclass(frozen=True)
class MessageFeatures:
    """Signals extracted from one message's text."""

    length: int
    has_question_mark: bool
    has_alert: bool
    has_emotional: bool
    has_treatment: bool
    has_family: bool
    has_code: bool
    has_problem: bool
    is_acknowledgement: bool
    is_assistant: bool


@dataclass(frozen=True)
class ScoreWeights:
    """Additive weight per signal.  Tunable policy, not a contract."""

    base: float = 0.5
    question: float = 0.15
    alert: float = 0.3
    emotional: float = 0.2
    treatment: float = 0.15
    family: float = 0.1
    code: float = 0.1
    problem: float = 0.1
    long_message: float = 0.1
    assistant: float = 0.05
    acknowledgement: float = -0.2


DEFAULT_WEIGHTS = ScoreWeights()


def _contains_any(text: str, terms: tuple[str, ...]) -> bool:
    return any(term in text for term in terms)


def extract_features(text: str | None, role: str = "user") -> MessageFeatures:
    """Extract scoring signals from *text*."""
    raw = (text or "").strip()
    lowered = " ".join(raw.lower().split())
    bare = lowered.strip(" .!?,;:")
    has_emotional = _contains_any(lowered, EMOTIONAL_TERMS)
    has_treatment = _contains_any(lowered, TREATMENT_TERMS)
    has_family = _contains_any(lowered, FAMILY_TERMS)
    # A lone topic word ("medication") is not an acknowledgement.
    has_topic_words = has_emotional or has_treatment or has_family

    return MessageFeatures(
        length=len(raw),
        has_question_mark="?" in raw,
        has_alert=_contains_any(lowered, ALERT_TERMS),
        has_emotional=has_emotional,
        has_treatment=has_treatment,
        has_family=has_family,
        has_code=_contains_any(raw.lower(), CODE_TERMS),
        has_problem=_contains_any(lowered, PROBLEM_TERMS),
        is_acknowledgement=bare in ACKNOWLEDGEMENTS
        or (bool(bare) and " " not in bare and not has_topic_words),
        is_assistant=role == "assistant",
    )


def score_features(features: MessageFeatures, weights: ScoreWeights = DEFAULT_WEIGHTS) -> float:
    """Combine features additively and clamp to ``[0, 1]``.

    The question bonus is added after the other signals are clamped to
    ``1 - weights.question``, so a question always outranks the same text
    without one.  Alert vocabulary lands in the top band (>= 0.8), terse
    acknowledgements in the bottom band (<= 0.5).
    """
    if features.length == 0:
        return DEFAULT_SCORE

    ceiling = 1.0 - weights.question
    score = weights.base
    if features.has_emotional:
        score += weights.emotional
    if features.has_treatment:
        score += weights.treatment
    if features.has_family:
        score += weights.family
    if features.has_code:
        score += weights.code
    if features.has_problem:
        score += weights.problem
    if features.length > LONG_MESSAGE_CHARS:
        score += weights.long_message
    if features.is_assistant:
        score += weights.assistant

    if features.has_alert:
        score = max(score + weights.alert, TOP_BAND)
    elif features.is_acknowledgement:
        ceiling = DEFAULT_SCORE - weights.question
        score += weights.acknowledgement

    score = min(max(score, 0.0), ceiling)
    if features.has_question_mark:
        score += weights.question
    return round(min(score, 1.0), 4)


def score_text(text: str | None, role: str = "user") -> float:
    """Score raw text.  Never raises; degenerate input scores 0.5."""
    try:
        return score_features(extract_features(text, role))
    except Exception:
        logger.exception("Importance scoring failed, using default")
        return DEFAULT_SCORE


def score_message(message: Message) -> float:
    """Relevance of *message* in ``[0, 1]``.  Pure: *message* is not modified."""
    return score_text(getattr(message, "text", None), getattr(message, "role", "user"))
