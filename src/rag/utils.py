"""
Utility functions for RAG module.
"""

from __future__ import annotations

from src.ingest.normalizer import STOPWORDS, TOKEN_RE, iter_tokens, tokenize

__all__ = ["STOPWORDS", "TOKEN_RE", "iter_tokens", "tokenize", "stem", "within_edits"]


def stem(token: str) -> str:
    """Light plural stemming: ``cells`` -> ``cell``, ``bodies`` -> ``body``."""
    if len(token) <= 3:
        return token
    if token.endswith("ies") and len(token) > 4:
        return token[:-3] + "y"
    if token.endswith("sses"):
        return token[:-2]
    if token.endswith(("xes", "ches", "shes")):
        return token[:-2]
    if token.endswith("s") and not token.endswith(("ss", "us", "is")):
        return token[:-1]
    return token


def within_edits(a: str, b: str, max_edits: int = 1) -> bool:
    """True if the Levenshtein distance between ``a`` and ``b`` is at most ``max_edits``."""
    if abs(len(a) - len(b)) > max_edits:
        return False
    if a == b:
        return True
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i] + [0] * len(b)
        for j, cb in enumerate(b, start=1):
            cur[j] = min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + (ca != cb))
        if min(cur) > max_edits:
            return False
        prev = cur
    return prev[-1] <= max_edits
