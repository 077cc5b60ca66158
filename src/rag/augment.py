"""
Context augmentation for relationship questions.

Questions such as "which organelles are part of the cell" often need passages
that mention the related concepts without the question's wording, so a thin
result list is topped up with chunks mentioning several query words.
"""

from __future__ import annotations

from typing import List, Sequence

from src.ingest.chunker import Chunk

from .query import analyze

MIN_RESULTS = 5
EXTRA_CHUNKS = 3
MIN_SHARED_WORDS = 2


def augment_relationship_context(
    results: Sequence[Chunk],
    chunks: Sequence[Chunk],
    query: str,
    min_results: int = MIN_RESULTS,
    extra: int = EXTRA_CHUNKS,
) -> List[Chunk]:
    """Append up to ``extra`` chunks sharing two or more query words."""
    out = list(results)
    parsed = analyze(query)
    if not parsed.is_relationship or len(out) >= min_results:
        return out

    taken = {c.id for c in out}
    added = 0
    for chunk in chunks:
        if added >= extra:
            break
        if chunk.id in taken:
            continue
        lower = chunk.text.lower()
        if sum(1 for w in parsed.words if w in lower) >= MIN_SHARED_WORDS:
            out.append(chunk)
            taken.add(chunk.id)
            added += 1
    return out
