"""
Canonicalization of text extracted from textbook PDFs.
"""

from __future__ import annotations

import re
from typing import Iterable, List

TOKEN_RE = re.compile(r"[a-z0-9]+")

STOPWORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "of", "in", "on", "for", "to",
        "is", "are", "be", "as", "that", "this", "these", "those",
        "with", "by", "at", "from", "it", "its", "we", "they", "you",
        "was", "were", "has", "have", "had", "will", "into", "also",
        "than", "then", "there", "their", "them", "about", "such",
        "each", "other", "some", "been", "being",
        # question words carry no content in student questions
        "what", "which", "who", "whom", "why", "how", "when", "where",
        "does", "did", "can", "please", "tell", "explain",
    }
)

_HSPACE_RE = re.compile(r"[^\S\n]+")
_SPACE_AROUND_NEWLINE_RE = re.compile(r" *\n *")
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")
# no ASCII hyphen: it occurs inside words and page markers
_OPERATOR_RE = re.compile(r" *([=+×÷−<>≤≥]) *")

_QUOTES = str.maketrans(
    {
        "‘": "'",
        "’": "'",
        "‚": "'",
        "‛": "'",
        "“": '"',
        "”": '"',
        "„": '"',
        "‟": '"',
    }
)


def normalize(raw: str) -> str:
    """
    Normalize raw extracted text.

    Collapses horizontal whitespace, keeps paragraph breaks (at most one blank
    line), straightens curly quotes and pads operator characters with single
    spaces so formulas such as ``F=ma`` tokenize as ``F = ma``.
    """
    if not raw:
        return ""
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    text = text.translate(_QUOTES)
    text = _OPERATOR_RE.sub(r" \1 ", text)
    text = _HSPACE_RE.sub(" ", text)
    text = _SPACE_AROUND_NEWLINE_RE.sub("\n", text)
    text = _MANY_NEWLINES_RE.sub("\n\n", text)
    return text.strip()


def tokenize(text: str) -> List[str]:
    """All lowercase word tokens in order, nothing dropped."""
    return TOKEN_RE.findall(text.lower())


def iter_tokens(text: str, min_length: int = 3) -> Iterable[str]:
    """Content tokens of at least ``min_length`` characters, stopwords removed."""
    for tok in tokenize(text):
        if len(tok) < min_length or tok in STOPWORDS:
            continue
        yield tok
