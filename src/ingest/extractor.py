"""
PDF text extraction with explicit page-boundary markers.

Each page's text is prefixed with ``---PAGE <n>---`` on its own paragraph so
downstream chunking can recover page ranges after the pages are concatenated.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path
from typing import BinaryIO, Iterable, Union

import requests
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .normalizer import normalize

logging.getLogger("pypdf").setLevel(logging.ERROR)

logger = logging.getLogger(__name__)

PAGE_MARKER_RE = re.compile(r"---PAGE (\d+)---")

DocumentSource = Union[str, Path, bytes, BinaryIO, PdfReader]


class ExtractionFailed(Exception):
    """No extractable text could be read from the document."""


def page_marker(page_number: int) -> str:
    return f"---PAGE {page_number}---"


def strip_page_markers(text: str) -> str:
    """Remove page markers and the blank lines they leave behind."""
    cleaned = PAGE_MARKER_RE.sub("", text)
    cleaned = re.sub(r"[^\S\n]*\n[^\S\n]*", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def extract_pages(pages: Iterable[str]) -> str:
    """
    Assemble per-page texts (page 1 first) into one normalized stream.

    Pages without text are skipped but still consume a page number.

    Raises:
        ExtractionFailed: if no page contains text.
    """
    parts = []
    for page_number, page_text in enumerate(pages, start=1):
        body = (page_text or "").strip()
        if not body:
            continue
        parts.append(f"\n\n{page_marker(page_number)}\n\n{body}")
    if not parts:
        raise ExtractionFailed("No text could be extracted from this PDF.")
    return normalize("".join(parts))


def _open_reader(document: DocumentSource) -> PdfReader:
    if isinstance(document, PdfReader):
        return document
    if isinstance(document, bytes):
        return PdfReader(io.BytesIO(document))
    if isinstance(document, (str, Path)):
        return PdfReader(str(document))
    return PdfReader(document)


def extract(document: DocumentSource) -> str:
    """
    Extract normalized, page-marked text from a PDF.

    Args:
        document: Path, raw bytes, binary file object or an open PdfReader.

    Returns:
        The normalized text with ``---PAGE n---`` markers.

    Raises:
        ExtractionFailed: if the PDF cannot be parsed or has no text layer.
    """
    try:
        reader = _open_reader(document)
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, OSError, ValueError) as e:
        raise ExtractionFailed(f"Could not read PDF: {e}") from e
    logger.info("Extracted %s pages", len(pages))
    return extract_pages(pages)


def fetch_document(url: str, timeout: float = 30.0) -> bytes:
    """Download a PDF by URL for extraction."""
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise ExtractionFailed(f"Could not download document: {e}") from e
    return resp.content
