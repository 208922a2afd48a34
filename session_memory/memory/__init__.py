"""Conversation memory — scoring, caching, summaries, pins and context assembly."""

from session_memory.memory.assembler import ContextAssembler, fit_to_budget
from session_memory.memory.cache import RecencyCache
from session_memory.memory.messages import MessageStore
from session_memory.memory.models import (
    MemoryContext,
    MemoryStats,
    Message,
    SemanticPin,
    Summary,
)
from session_memory.memory.pins import PinStore
from session_memory.memory.prompt import render_context
from session_memory.memory.scoring import extract_features, score_features, score_message
from session_memory.memory.service import ConversationMemory
from session_memory.memory.summaries import SummaryStore
from session_memory.memory.summarizer import AnthropicSummarizer, Summarizer, fallback_summary
from session_memory.memory.tokens import CharRatioEstimator, TokenEstimator

__all__ = [
    "AnthropicSummarizer",
    "CharRatioEstimator",
    "ContextAssembler",
    "ConversationMemory",
    "MemoryContext",
    "MemoryStats",
    "Message",
    "MessageStore",
    "PinStore",
    "RecencyCache",
    "SemanticPin",
    "Summarizer",
    "Summary",
    "SummaryStore",
    "TokenEstimator",
    "extract_features",
    "fallback_summary",
    "fit_to_budget",
    "render_context",
    "score_features",
    "score_message",
]
