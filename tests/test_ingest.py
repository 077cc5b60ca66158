"""
Tests for document ingestion: normalization, extraction, tagging and chunking.
"""

from __future__ import annotations

import pytest
import requests
from pypdf.errors import PdfReadError

from src.ingest import (
    DOMAIN_TERMS,
    PAGE_MARKER_RE,
    ExtractionFailed,
    chunk_text,
    detect_topic,
    extract,
    extract_keywords,
    extract_pages,
    fetch_document,
    normalize,
    related_terms,
    strip_page_markers,
)
from src.ingest import extractor as extractor_module
from src.ingest import normalizer
from src.rag import analyze, utils

PAGES = [
    "Chapter 1: Cells. The cell is the basic unit of life.",
    "Mitochondria produce ATP.",
    "Chapter 2: Motion. Velocity is the rate of change of position.",
]


# --- normalizer ---


def test_normalize_collapses_whitespace():
    """Runs of spaces and tabs collapse to one space; lines are trimmed."""
    assert normalize("a  b\t\t c \n  d") == "a b c\nd"


def test_normalize_paragraph_breaks():
    """Three or more newlines become one paragraph break; CRLF becomes LF."""
    assert normalize("one\r\n\r\n\r\n\r\ntwo") == "one\n\ntwo"


def test_normalize_quotes_and_operators():
    """Curly quotes are straightened and operators get single spaces."""
    assert normalize("“H2O” isn’t 2+2=4") == "\"H2O\" isn't 2 + 2 = 4"


def test_normalize_keeps_hyphens_and_markers():
    """Hyphenated words and page markers are left intact."""
    text = "---PAGE 3---\n\nwell-known facts"
    assert normalize(text) == text


def test_normalize_empty():
    """Empty input gives empty output."""
    assert normalize("") == ""
    assert normalize("   \n\n ") == ""


# --- extractor ---


def test_extract_pages_inserts_markers():
    """Each non-empty page gets its 1-based marker; empty pages keep their number."""
    text = extract_pages(["First page.", "", "Third page."])
    assert text == "---PAGE 1---\n\nFirst page.\n\n---PAGE 3---\n\nThird page."


def test_extract_pages_no_text_fails():
    """A document without any page text cannot be extracted."""
    with pytest.raises(ExtractionFailed):
        extract_pages(["", "   "])


def test_strip_page_markers():
    """Markers and the blank lines they leave are removed."""
    text = "---PAGE 1---\n\nOne.\n\n---PAGE 2---\n\nTwo."
    assert strip_page_markers(text) == "One.\n\nTwo."


def _fake_reader(page_texts):
    class FakePage:
        def __init__(self, text):
            self._text = text

        def extract_text(self):
            return self._text

    class FakeReader:
        def __init__(self, stream):
            self.pages = [FakePage(t) for t in page_texts]

    return FakeReader


def test_extract_reads_pdf_pages(monkeypatch):
    """extract() reads pages in order through pypdf."""
    monkeypatch.setattr(extractor_module, "PdfReader", _fake_reader(PAGES))
    text = extract(b"%PDF-1.4 fake")
    assert text.startswith("---PAGE 1---")
    assert "---PAGE 3---" in text
    assert "Mitochondria produce ATP." in text


def test_extract_wraps_pdf_errors(monkeypatch):
    """Unparseable PDFs raise ExtractionFailed."""

    class BrokenReader:
        def __init__(self, stream):
            raise PdfReadError("EOF marker not found")

    monkeypatch.setattr(extractor_module, "PdfReader", BrokenReader)
    with pytest.raises(ExtractionFailed):
        extract(b"not a pdf")


def test_extract_image_only_pdf(monkeypatch):
    """A PDF whose pages have no text layer fails extraction."""
    monkeypatch.setattr(extractor_module, "PdfReader", _fake_reader([None, ""]))
    with pytest.raises(ExtractionFailed):
        extract(b"%PDF-1.4 scanned")


def test_fetch_document_network_error(monkeypatch):
    """Download failures surface as ExtractionFailed."""

    def fake_get(url, timeout):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(extractor_module.requests, "get", fake_get)
    with pytest.raises(ExtractionFailed):
        fetch_document("https://example.com/book.pdf")


# --- vocabulary ---


def test_detect_topic():
    """Topic is the first category whose cue words appear as whole words."""
    assert detect_topic("The cell membrane") == "biology"
    assert detect_topic("Velocity of a falling body") == "physics"
    assert detect_topic("An acid reacts with a metal") == "chemistry"
    assert detect_topic("The history of India") == "general"


def test_extract_keywords_frequency_then_domain_terms():
    """Frequent words come first, then terms from matched concepts."""
    keywords = extract_keywords("Photosynthesis uses chlorophyll. Photosynthesis makes glucose.")
    assert keywords == (
        "photosynthesis",
        "uses",
        "chlorophyll",
        "makes",
        "glucose",
        "light reaction",
        "dark reaction",
    )


def test_domain_terms_are_read_only():
    """The term table cannot be mutated."""
    with pytest.raises(TypeError):
        DOMAIN_TERMS["biology"]["cell"] = ()
    with pytest.raises(TypeError):
        DOMAIN_TERMS["geology"] = {}


def test_related_terms():
    """Concepts match by substring in either direction."""
    assert "powerhouse" in related_terms("mitochondria")
    assert "mitochondria" in related_terms("cells")
    assert related_terms("volcano") == ()


# --- chunker ---


def test_chunk_ingestion_scenario():
    """Headings split sections; page ranges and topics follow the pages."""
    chunks = chunk_text(extract_pages(PAGES))
    assert len(chunks) == 2

    cells, motion = chunks
    assert cells.id == "chunk_0"
    assert (cells.page_range_start, cells.page_range_end) == (1, 2)
    assert cells.topic == "biology"
    assert cells.text.startswith("Chapter 1: Cells.")
    assert "Mitochondria produce ATP." in cells.text

    assert motion.id == "chunk_1"
    assert (motion.page_range_start, motion.page_range_end) == (3, 3)
    assert motion.topic == "physics"
    assert motion.text == "Chapter 2: Motion. Velocity is the rate of change of position."
    assert all("PAGE" not in c.text for c in chunks)


def test_chunk_empty_and_short_input():
    """Empty input gives no chunks; a lone short section is discarded."""
    assert chunk_text("") == []
    assert chunk_text("Too short.") == []


def test_chunk_invalid_overlap():
    """Overlap must be non-negative and smaller than the chunk size."""
    with pytest.raises(ValueError):
        chunk_text("text", chunk_size=100, overlap=100)
    with pytest.raises(ValueError):
        chunk_text("text", chunk_size=100, overlap=-1)


@pytest.fixture
def long_text() -> str:
    return " ".join(f"Sentence number {i} talks about cells and energy." for i in range(120))


def test_chunk_windows_cover_text_with_bounded_overlap(long_text: str):
    """Windows start at 0, end at the text end, leave no gaps and overlap at most `overlap`."""
    chunks = chunk_text(long_text, chunk_size=300, overlap=100)
    assert len(chunks) > 5
    assert chunks[0].position == 0
    last = chunks[-1]
    assert last.position + len(last.text) == len(long_text)

    for prev, cur in zip(chunks, chunks[1:]):
        prev_end = prev.position + len(prev.text)
        assert cur.position > prev.position
        assert cur.position <= prev_end
        assert prev_end - cur.position <= 100


def test_chunk_boundaries_respect_words(long_text: str):
    """No chunk starts or ends in the middle of a word."""
    chunks = chunk_text(long_text, chunk_size=300, overlap=100)
    for c in chunks:
        start, end = c.position, c.position + len(c.text)
        assert 50 <= len(c.text) <= 300
        assert start == 0 or long_text[start - 1].isspace()
        assert end == len(long_text) or not long_text[end].isalnum()
        assert long_text[start:end] == c.text


def test_chunk_page_ranges_and_markers():
    """Windows never split a page marker and page ranges stay ordered."""
    pages = ["Plant cells have rigid walls made of cellulose. " * 8 for _ in range(3)]
    chunks = chunk_text(extract_pages(pages), chunk_size=500, overlap=100)
    assert chunks[0].page_range_start == 1
    assert chunks[-1].page_range_end == 3
    for c in chunks:
        assert "PAGE" not in c.text and "---" not in c.text
        assert 1 <= c.page_range_start <= c.page_range_end <= 3
    starts = [c.page_range_start for c in chunks]
    assert starts == sorted(starts)


def test_chunk_short_tail_page_is_kept():
    """A tail window below the minimum joins the previous chunk instead of vanishing."""
    pages = ["Plant cells have rigid walls made of cellulose. " * 8, "Tiny tail page."]
    chunks = chunk_text(extract_pages(pages), chunk_size=420, overlap=0)
    assert len(chunks) == 1
    assert (chunks[0].page_range_start, chunks[0].page_range_end) == (1, 2)
    assert chunks[0].text.endswith("Tiny tail page.")


@pytest.mark.parametrize("chunk_size, overlap", [(420, 0), (300, 100), (500, 100), (1500, 500)])
def test_chunk_every_page_is_covered(chunk_size: int, overlap: int):
    """Every page with text falls inside some chunk's page range."""
    sentence = "Plant cells have rigid walls made of cellulose. "
    pages = [sentence * n for n in (8, 1, 5, 2, 9)] + ["Tiny tail page."]
    chunks = chunk_text(extract_pages(pages), chunk_size=chunk_size, overlap=overlap)
    covered = set()
    for c in chunks:
        covered.update(range(c.page_range_start, c.page_range_end + 1))
    assert covered == set(range(1, len(pages) + 1))


def test_chunk_range_starts_at_page_of_leading_text():
    """A window opening mid-page starts its range at that page, not the next marker."""
    text = extract_pages(["Plant cells have rigid walls made of cellulose. " * 8 for _ in range(3)])
    markers = [(m.start(), int(m.group(1))) for m in PAGE_MARKER_RE.finditer(text)]
    chunks = chunk_text(text, chunk_size=500, overlap=100)
    assert any(c.page_range_start < c.page_range_end for c in chunks)
    for c in chunks:
        pos = c.position
        while text[pos].isspace():
            pos += 1
        expected = max(page for start, page in markers if start <= pos)
        assert c.page_range_start == expected


def test_keywords_and_query_words_share_stopwords():
    """Keyword extraction and query analysis drop the same stopwords."""
    assert utils.STOPWORDS is normalizer.STOPWORDS
    assert "explain" not in extract_keywords("Explain how plant cells divide. Explain mitosis.")
    assert analyze("What do cells have inside?").words == ("cells", "inside")
