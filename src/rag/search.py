"""
Multi-strategy lexical search over one document's chunks.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from src.ingest.chunker import Chunk

from .config import RAGConfig
from .index import SearchIndex
from .query import ParsedQuery, analyze
from .strategies import DEFAULT_STRATEGIES, Strategy

logger = logging.getLogger(__name__)


class SearchDegraded(Exception):
    """Indexed search failed; callers fall back to a substring scan."""


def _score(
    index: SearchIndex,
    chunks: Sequence[Chunk],
    parsed: ParsedQuery,
    strategies: Sequence[Strategy],
) -> Dict[str, float]:
    scores: Dict[str, float] = defaultdict(float)
    for strategy in strategies:
        for cid, multiplier in strategy.match(index, chunks, parsed).items():
            scores[cid] += strategy.weight * multiplier
    return scores


def _ranked(
    index: Optional[SearchIndex],
    chunks: Sequence[Chunk],
    parsed: ParsedQuery,
    top_k: int,
    strategies: Sequence[Strategy],
) -> List[Chunk]:
    if index is None:
        raise SearchDegraded("No index for this document")
    try:
        scores = _score(index, chunks, parsed, strategies)
        relevance = index.relevance(parsed.words)
    except Exception as e:
        raise SearchDegraded(str(e)) from e

    order = {c.id: i for i, c in enumerate(chunks)}
    by_id = {c.id: c for c in chunks}
    unknown = [cid for cid in scores if cid not in by_id]
    if unknown:
        raise SearchDegraded(f"Index does not match chunk set ({len(unknown)} unknown ids)")

    ranked_ids = sorted(
        (cid for cid, s in scores.items() if s > 0),
        key=lambda cid: (-scores[cid], -relevance.get(cid, 0.0), order[cid]),
    )
    results = [by_id[cid] for cid in ranked_ids[:top_k]]

    if len(results) < top_k:
        results.extend(_backfill(chunks, parsed, set(ranked_ids[:top_k]), top_k - len(results)))
    return results


def _backfill(chunks: Sequence[Chunk], parsed: ParsedQuery, taken: set, limit: int) -> List[Chunk]:
    """Chunks ranked by plain occurrence count of the query words."""
    counted = []
    for i, chunk in enumerate(chunks):
        if chunk.id in taken:
            continue
        lower = chunk.text.lower()
        count = sum(lower.count(w) for w in parsed.words)
        if count > 0:
            counted.append((-count, i, chunk))
    counted.sort(key=lambda x: (x[0], x[1]))
    return [chunk for _, _, chunk in counted[:limit]]


def substring_fallback(chunks: Sequence[Chunk], query: str, top_k: int) -> List[Chunk]:
    """Case-insensitive substring filter over all chunks."""
    needle = query.strip().lower()
    if not needle:
        return []
    return [c for c in chunks if needle in c.text.lower()][:top_k]


def search(
    index: Optional[SearchIndex],
    chunks: Sequence[Chunk],
    query: str,
    top_k: int = 8,
    *,
    config: Optional[RAGConfig] = None,
    strategies: Optional[Sequence[Strategy]] = None,
) -> List[Chunk]:
    """
    Rank chunks for ``query``.

    Strategy scores are summed per chunk; ties fall back to BM25 relevance and
    then document order, so equal inputs always give equal output. Short
    result lists are backfilled by literal word counts. Errors inside the
    index degrade to a substring scan instead of propagating.

    Returns:
        At most ``min(top_k, config.max_context_chunks)`` distinct chunks.
    """
    if config is None:
        config = RAGConfig()
    if strategies is None:
        strategies = DEFAULT_STRATEGIES
    limit = max(0, min(top_k, config.max_context_chunks))

    parsed = analyze(query)
    if not parsed.lower or limit == 0:
        return []

    try:
        return _ranked(index, chunks, parsed, limit, strategies)
    except SearchDegraded as e:
        logger.warning("Search degraded, using substring fallback: %s", e)
        return substring_fallback(chunks, parsed.text, limit)
