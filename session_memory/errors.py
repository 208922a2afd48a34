"""Exceptions raised by the conversation memory engine."""


class MemoryEngineError(Exception):
    """Base class for all memory engine failures."""


class ValidationError(MemoryEngineError):
    """Empty or invalid input to a memory operation."""


class NotFoundError(MemoryEngineError):
    """A session or message range does not exist."""


class SummarizationError(MemoryEngineError):
    """The summarizer failed, timed out, or had nothing to summarize."""


class EmptyRangeError(NotFoundError, SummarizationError):
    """No messages exist in the requested summary range."""


class StoreError(MemoryEngineError):
    """The underlying database call failed."""
