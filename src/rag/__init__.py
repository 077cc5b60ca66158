"""
RAG (Retrieval-Augmented Generation) module.

Provides lexical retrieval over one document's chunks:
- Inverted index with per-field BM25 relevance
- Multi-strategy search with backfill and substring fallback
- Re-ranking and relationship context augmentation
"""

from .augment import augment_relationship_context
from .config import RAGConfig
from .index import IndexBuildFailed, SearchIndex
from .query import ParsedQuery, analyze
from .reranker import rerank
from .search import SearchDegraded, search, substring_fallback
from .strategies import DEFAULT_STRATEGIES, Strategy

__all__ = [
    "augment_relationship_context",
    "RAGConfig",
    "IndexBuildFailed",
    "SearchIndex",
    "ParsedQuery",
    "analyze",
    "rerank",
    "SearchDegraded",
    "search",
    "substring_fallback",
    "DEFAULT_STRATEGIES",
    "Strategy",
]
