"""
Lexical search strategies.

Each strategy maps a parsed query to ``{chunk_id: multiplier}``; the search
engine adds ``weight * multiplier`` to the chunk's score. Weights are tunable,
but the ordering exact phrase > all words > per word > fuzzy/topic/keyword
is what ranking relies on.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Sequence, Tuple

from src.ingest.chunker import Chunk
from src.ingest.vocabulary import GENERAL_TOPIC, domain_terms, matching_concepts

from .index import SearchIndex
from .query import ParsedQuery

MatchFn = Callable[[SearchIndex, Sequence[Chunk], ParsedQuery], Dict[str, float]]

PHRASE_WEIGHT = 100.0
ALL_WORDS_WEIGHT = 50.0
WORD_WEIGHT = 20.0
FUZZY_WEIGHT = 10.0
DOMAIN_WEIGHT = 15.0
TOPIC_WEIGHT = 5.0
KEYWORD_WEIGHT = 8.0

FUZZY_MIN_LENGTH = 5


@dataclass(frozen=True)
class Strategy:
    name: str
    weight: float
    match: MatchFn


def match_phrase(index: SearchIndex, chunks: Sequence[Chunk], q: ParsedQuery) -> Dict[str, float]:
    return {cid: 1.0 for cid in index.phrase_matches(q.phrase)}


def match_all_words(index: SearchIndex, chunks: Sequence[Chunk], q: ParsedQuery) -> Dict[str, float]:
    if not q.is_multi_word:
        return {}
    return {cid: 1.0 for cid in index.chunks_with_all(q.words)}


def match_each_word(index: SearchIndex, chunks: Sequence[Chunk], q: ParsedQuery) -> Dict[str, float]:
    hits: Counter = Counter()
    for word in q.words:
        hits.update(index.postings(word, "text") | index.postings(word, "keywords"))
    return dict(hits)


def match_fuzzy(index: SearchIndex, chunks: Sequence[Chunk], q: ParsedQuery) -> Dict[str, float]:
    hits: Counter = Counter()
    for word in q.words:
        if len(word) < FUZZY_MIN_LENGTH:
            continue
        ids = set()
        for term in index.fuzzy_terms(word, max_edits=1):
            ids |= index.postings(term, "text") | index.postings(term, "keywords")
        hits.update(ids)
    return dict(hits)


def _cluster_pattern(concept: str) -> "re.Pattern[str]":
    terms = (concept,) + domain_terms()[concept]
    return re.compile(r"\b(?:" + "|".join(re.escape(t) for t in terms) + r")")


def match_domain_terms(index: SearchIndex, chunks: Sequence[Chunk], q: ParsedQuery) -> Dict[str, float]:
    """One hit per matched concept whose cluster shows up in a chunk's text or keywords."""
    concepts = dict.fromkeys(c for word in q.words for c in matching_concepts(word))
    hits: Counter = Counter()
    for concept in concepts:
        pattern = _cluster_pattern(concept)
        for chunk in chunks:
            haystack = chunk.text.lower() + "\n" + "\n".join(chunk.keywords)
            if pattern.search(haystack):
                hits[chunk.id] += 1
    return dict(hits)


def match_topic(index: SearchIndex, chunks: Sequence[Chunk], q: ParsedQuery) -> Dict[str, float]:
    if q.topic == GENERAL_TOPIC:
        return {}
    return {cid: 1.0 for cid in index.postings(q.topic, "topic")}


def match_keyword_substring(index: SearchIndex, chunks: Sequence[Chunk], q: ParsedQuery) -> Dict[str, float]:
    hits: Counter = Counter()
    for chunk in chunks:
        for word in q.words:
            if any(word in kw or kw in word for kw in chunk.keywords):
                hits[chunk.id] += 1
    return dict(hits)


DEFAULT_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy("phrase", PHRASE_WEIGHT, match_phrase),
    Strategy("all_words", ALL_WORDS_WEIGHT, match_all_words),
    Strategy("each_word", WORD_WEIGHT, match_each_word),
    Strategy("fuzzy", FUZZY_WEIGHT, match_fuzzy),
    Strategy("domain_terms", DOMAIN_WEIGHT, match_domain_terms),
    Strategy("topic", TOPIC_WEIGHT, match_topic),
    Strategy("keyword_substring", KEYWORD_WEIGHT, match_keyword_substring),
)
