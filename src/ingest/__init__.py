"""
Document ingestion: PDF text extraction, normalization and chunking.
"""

from .chunker import Chunk, chunk_text
from .extractor import (
    PAGE_MARKER_RE,
    ExtractionFailed,
    extract,
    extract_pages,
    fetch_document,
    strip_page_markers,
)
from .normalizer import normalize
from .vocabulary import (
    DOMAIN_TERMS,
    GENERAL_TOPIC,
    detect_topic,
    domain_terms,
    extract_keywords,
    matching_concepts,
    related_terms,
)

__all__ = [
    "Chunk",
    "chunk_text",
    "PAGE_MARKER_RE",
    "ExtractionFailed",
    "extract",
    "extract_pages",
    "fetch_document",
    "strip_page_markers",
    "normalize",
    "DOMAIN_TERMS",
    "GENERAL_TOPIC",
    "detect_topic",
    "domain_terms",
    "extract_keywords",
    "matching_concepts",
    "related_terms",
]
