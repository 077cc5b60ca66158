"""
Re-ranker for an already selected chunk list.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from src.ingest.chunker import Chunk

from .query import ParsedQuery, analyze

CHAPTER_HINT_BONUS = 20.0
QUERY_TEXT_BONUS = 15.0
KEYWORD_BONUS = 5.0
TOPIC_BONUS = 10.0


def rerank_score(chunk: Chunk, parsed: ParsedQuery, chapter_hint: Optional[str] = None) -> float:
    lower = chunk.text.lower()
    score = 0.0
    if chapter_hint and chapter_hint.strip().lower() in lower:
        score += CHAPTER_HINT_BONUS
    if parsed.lower and parsed.lower in lower:
        score += QUERY_TEXT_BONUS
    for word in parsed.words:
        if any(word in kw for kw in chunk.keywords):
            score += KEYWORD_BONUS
    if chunk.topic == parsed.topic:
        score += TOPIC_BONUS
    return score


def rerank(chunks: Sequence[Chunk], query: str, chapter_hint: Optional[str] = None) -> List[Chunk]:
    """Stable re-sort of ``chunks``; no chunk is added or removed."""
    parsed = analyze(query)
    return sorted(chunks, key=lambda c: -rerank_score(c, parsed, chapter_hint))
