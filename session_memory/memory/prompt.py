"""Render a MemoryContext for injection into the system prompt."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from session_memory.memory.models import MemoryContext, SemanticPin, Summary


def _format_pins(pins: list[SemanticPin]) -> str:
    if not pins:
        return ""
    lines = ["## Pinned Facts\n"]
    for pin in pins:
        lines.append(f"- [{pin.pin_type}] {pin.content}")
    return "\n".join(lines)


def _format_summaries(summaries: list[Summary]) -> str:
    if not summaries:
        return ""
    lines = ["## Earlier in This Conversation\n"]
    # Oldest first reads naturally in a prompt.
    for summary in reversed(summaries):
        lines.append(
            f"- (messages {summary.start_message_id}-{summary.end_message_id}) "
            f"{summary.summary_text}"
        )
    return "\n".join(lines)


def render_context(context: MemoryContext) -> str:
    """Markdown block with the context's pins and summaries.

    Recent messages are sent as conversation turns instead; see
    :meth:`MemoryContext.to_api_messages`.  Returns an empty string when
    there is nothing to add.
    """
    sections = [
        section
        for section in (_format_pins(context.semantic_pins), _format_summaries(context.summaries))
        if section
    ]
    return "\n\n".join(sections)
