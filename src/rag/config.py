"""
Configuration for RAG retrieval pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RAGConfig:
    """Configuration for chunking and retrieval."""

    chunk_size: int = 1500
    chunk_overlap: int = 500
    min_chunk_chars: int = 50
    top_k: int = 8
    max_context_chunks: int = 10
    use_reranker: bool = True
    use_relationship_context: bool = True
