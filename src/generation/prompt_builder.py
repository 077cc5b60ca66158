"""
Prompt assembly: context blocks, history, subject preamble and instructions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

from src.ingest.chunker import Chunk

from .config import GenerationConfig
from .context_builder import build_context, format_history
from .prompts import (
    ANSWER_PROMPT,
    DEFAULT_PREAMBLE,
    HISTORY_BLOCK,
    NO_CONTEXT_BLOCK,
    REFUSAL_SENTENCE,
    SUBJECT_PREAMBLES,
)

if TYPE_CHECKING:
    from src.orchestrator.memory import Message


def build_prompt(
    context: Sequence[Chunk],
    query: str,
    chapter_hint: Optional[str],
    subject: Optional[str],
    history: Sequence["Message"] = (),
    *,
    config: Optional[GenerationConfig] = None,
) -> str:
    """Assemble the full model prompt. Pure and deterministic."""
    config = config or GenerationConfig()
    context_text = build_context(context) or NO_CONTEXT_BLOCK
    history_text = format_history(history, config.history_messages)
    preamble = SUBJECT_PREAMBLES.get((subject or "").lower(), DEFAULT_PREAMBLE)
    return ANSWER_PROMPT.format(
        preamble=preamble,
        context=context_text,
        history_block=HISTORY_BLOCK.format(history=history_text) if history_text else "",
        chapter=(chapter_hint or "").strip() or "General",
        query=query.strip(),
        refusal=REFUSAL_SENTENCE,
    )
