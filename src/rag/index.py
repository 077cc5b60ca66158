"""
Per-document inverted index over chunks.

Every chunk is indexed under three fields (text, keywords, topic). Postings
answer the lexical search strategies; one BM25 model per field supplies a
relevance score used to order chunks that tie on strategy score.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import numpy as np
from rank_bm25 import BM25Okapi

from src.ingest.chunker import Chunk

from .utils import stem, tokenize, within_edits

logger = logging.getLogger(__name__)

FIELD_BOOSTS: Dict[str, float] = {"text": 10.0, "keywords": 5.0, "topic": 3.0}


class IndexBuildFailed(Exception):
    """The chunk set could not be indexed."""


def field_terms(chunk: Chunk, field: str) -> List[str]:
    """Stemmed index terms of one chunk field, in order."""
    if field == "text":
        return [stem(t) for t in tokenize(chunk.text)]
    if field == "keywords":
        return [stem(t) for kw in chunk.keywords for t in tokenize(kw)]
    if field == "topic":
        return [stem(chunk.topic)]
    raise KeyError(field)


@dataclass
class SearchIndex:
    """Inverted index built once from a chunk list; never mutated afterwards."""

    chunk_ids: List[str]
    # field -> term -> chunk id -> term frequency
    fields: Dict[str, Dict[str, Dict[str, int]]]
    # term -> chunk id -> token positions in the text field
    positions: Dict[str, Dict[str, List[int]]]
    bm25: Dict[str, Optional[BM25Okapi]]

    @classmethod
    def from_chunks(cls, chunks: Sequence[Chunk]) -> "SearchIndex":
        """Build an index from chunks."""
        chunk_ids: List[str] = []
        seen = set()
        for c in chunks:
            if not isinstance(c, Chunk):
                raise IndexBuildFailed(f"Not a chunk: {c!r}")
            if c.id in seen:
                raise IndexBuildFailed(f"Duplicate chunk id: {c.id}")
            seen.add(c.id)
            chunk_ids.append(c.id)

        fields: Dict[str, Dict[str, Dict[str, int]]] = {}
        bm25: Dict[str, Optional[BM25Okapi]] = {}
        positions: Dict[str, Dict[str, List[int]]] = defaultdict(lambda: defaultdict(list))
        for field in FIELD_BOOSTS:
            postings: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
            tokenized_docs = []
            for c in chunks:
                terms = field_terms(c, field)
                tokenized_docs.append(terms)
                for i, term in enumerate(terms):
                    postings[term][c.id] += 1
                    if field == "text":
                        positions[term][c.id].append(i)
            fields[field] = {t: dict(p) for t, p in postings.items()}
            bm25[field] = BM25Okapi(tokenized_docs) if any(tokenized_docs) else None

        logger.debug("Indexed %s chunks (%s text terms)", len(chunk_ids), len(fields["text"]))
        return cls(
            chunk_ids=chunk_ids,
            fields=fields,
            positions={t: dict(p) for t, p in positions.items()},
            bm25=bm25,
        )

    def postings(self, term: str, field: Optional[str] = None) -> FrozenSet[str]:
        """Ids of chunks containing ``term`` in ``field`` (any field when None)."""
        key = stem(term.lower())
        names = [field] if field else list(FIELD_BOOSTS)
        ids: set = set()
        for name in names:
            ids.update(self.fields[name].get(key, {}))
        return frozenset(ids)

    def chunks_with_all(self, terms: Iterable[str]) -> FrozenSet[str]:
        """Ids of chunks whose text or keywords contain every term."""
        result: Optional[FrozenSet[str]] = None
        for term in terms:
            ids = self.postings(term, "text") | self.postings(term, "keywords")
            result = ids if result is None else result & ids
            if not result:
                return frozenset()
        return result or frozenset()

    def phrase_matches(self, tokens: Sequence[str]) -> FrozenSet[str]:
        """Ids of chunks whose text contains ``tokens`` consecutively."""
        keys = [stem(t.lower()) for t in tokens]
        if not keys:
            return frozenset()
        first = self.positions.get(keys[0], {})
        matches = set()
        for cid, starts in first.items():
            for offset, key in enumerate(keys[1:], start=1):
                at = set(self.positions.get(key, {}).get(cid, ()))
                starts = [s for s in starts if s + offset in at]
                if not starts:
                    break
            if starts:
                matches.add(cid)
        return frozenset(matches)

    def vocabulary(self) -> FrozenSet[str]:
        """All text and keyword terms."""
        return frozenset(self.fields["text"]) | frozenset(self.fields["keywords"])

    def fuzzy_terms(self, word: str, max_edits: int = 1) -> List[str]:
        """Indexed terms within ``max_edits`` edits of ``word`` (including itself)."""
        key = stem(word.lower())
        return sorted(t for t in self.vocabulary() if within_edits(key, t, max_edits))

    def relevance(self, terms: Iterable[str]) -> Dict[str, float]:
        """Boost-weighted BM25 score per chunk id over all fields."""
        keys = [stem(t.lower()) for t in terms]
        total = np.zeros(len(self.chunk_ids))
        for field, boost in FIELD_BOOSTS.items():
            model = self.bm25.get(field)
            if model is None or not keys:
                continue
            total += boost * np.asarray(model.get_scores(keys), dtype=float)
        return {cid: float(score) for cid, score in zip(self.chunk_ids, total)}
