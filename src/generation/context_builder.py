"""
Context builder for answer generation.

Formats ranked chunks into labeled blocks carrying their page range, and
recent conversation turns into ``Student:``/``Assistant:`` lines.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Sequence

from src.ingest.chunker import Chunk

if TYPE_CHECKING:
    from src.orchestrator.memory import Message

BLOCK_SEPARATOR = "\n\n---\n\n"

_SPEAKERS = {"user": "Student", "assistant": "Assistant"}


def build_context(chunks: Sequence[Chunk]) -> str:
    """
    Format chunks as ``[Context i - Pages a-b]:`` blocks in ranked order.

    Returns:
        The blocks joined by ``---`` separators, or ``""`` for no chunks.
    """
    parts: List[str] = []
    for i, chunk in enumerate(chunks, 1):
        header = f"[Context {i} - Pages {chunk.page_range_start}-{chunk.page_range_end}]:"
        parts.append(f"{header}\n{chunk.text.strip()}")
    return BLOCK_SEPARATOR.join(parts)


def format_history(messages: Sequence["Message"], limit: int = 6) -> str:
    """The last ``limit`` messages, one ``Speaker: text`` line each."""
    if limit <= 0:
        return ""
    lines = []
    for msg in list(messages)[-limit:]:
        speaker = _SPEAKERS.get(msg.role, msg.role.capitalize())
        lines.append(f"{speaker}: {msg.text}")
    return "\n".join(lines)
