"""
Query analysis shared by the search strategies, re-ranker and augmentation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple

from src.ingest.normalizer import normalize
from src.ingest.vocabulary import detect_topic

from .utils import iter_tokens, tokenize

RELATIONSHIP_CUES = (
    "part", "belong", "include", "member", "category",
    "type", "kind", "function", "role", "process",
)
_RELATIONSHIP_RE = re.compile(r"\b(?:" + "|".join(RELATIONSHIP_CUES) + r")")


@dataclass(frozen=True)
class ParsedQuery:
    """A query as seen by the search engine."""

    text: str
    lower: str
    words: Tuple[str, ...]
    phrase: Tuple[str, ...]
    topic: str
    is_relationship: bool = False

    @property
    def is_multi_word(self) -> bool:
        return len(self.words) > 1


def analyze(query: str) -> ParsedQuery:
    """Normalize ``query`` and derive its words, phrase tokens and topic."""
    text = normalize(query)
    lower = text.lower()
    words = tuple(dict.fromkeys(iter_tokens(lower)))
    return ParsedQuery(
        text=text,
        lower=lower,
        words=words,
        phrase=tuple(tokenize(lower)),
        topic=detect_topic(lower),
        is_relationship=bool(_RELATIONSHIP_RE.search(lower)),
    )
