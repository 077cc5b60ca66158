"""
Sliding-window chunker for page-marked textbook text.

Goals:
- Respect chapter/unit/section headings as hard boundaries.
- Produce overlapping windows that end on sentence or paragraph breaks.
- Carry the page range of every window so answers can cite pages.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Any, Dict, List, Optional, Tuple

from .extractor import PAGE_MARKER_RE, strip_page_markers
from .vocabulary import detect_topic, extract_keywords

CHUNK_SIZE = 1500
CHUNK_OVERLAP = 500
MIN_CHUNK_CHARS = 50

HEADING_RE = re.compile(
    r"^(?:chapter|unit|section|topic)\s+\d+\s*[:.\-]", re.IGNORECASE | re.MULTILINE
)
_SENTENCE_END = ".!?:;"


@dataclasses.dataclass(frozen=True)
class Chunk:
    id: str
    text: str
    page_range_start: int
    page_range_end: int
    position: int
    keywords: Tuple[str, ...] = ()
    topic: str = "general"

    @property
    def pages(self) -> str:
        if self.page_range_start == self.page_range_end:
            return str(self.page_range_start)
        return f"{self.page_range_start}-{self.page_range_end}"

    def to_dict(self) -> Dict[str, Any]:
        data = dataclasses.asdict(self)
        data["keywords"] = list(self.keywords)
        return data


def _last_marker(text: str, offset: int) -> Optional[re.Match]:
    """The last page marker starting before ``offset``."""
    idx = text.rfind("---PAGE ", 0, offset)
    while idx != -1:
        m = PAGE_MARKER_RE.match(text, idx)
        if m:
            return m
        idx = text.rfind("---PAGE ", 0, idx)
    return None


def _page_at(text: str, offset: int) -> int:
    """Page in effect at ``offset``; text before the first marker is page 1."""
    m = _last_marker(text, offset)
    return int(m.group(1)) if m else 1


def _section_spans(text: str, min_chunk_chars: int) -> List[Tuple[int, int]]:
    """
    Split on heading lines. A page marker right before a heading moves with it.
    Sections too short to stand alone are folded into the next one (or the
    previous one when they come last).
    """
    bounds = [0]
    for m in HEADING_RE.finditer(text):
        start = m.start()
        marker = _last_marker(text, start)
        if marker is not None and not text[marker.end() : start].strip():
            start = marker.start()
        if start > bounds[-1]:
            bounds.append(start)
    bounds.append(len(text))

    spans: List[Tuple[int, int]] = []
    pending: Optional[int] = None
    for s, e in zip(bounds, bounds[1:]):
        if pending is not None:
            s, pending = pending, None
        if len(strip_page_markers(text[s:e])) < min_chunk_chars:
            pending = s
            continue
        spans.append((s, e))
    if pending is not None:
        if spans:
            spans[-1] = (spans[-1][0], len(text))
        else:
            spans.append((pending, len(text)))
    return spans


def _is_sentence_end(text: str, i: int) -> bool:
    if text[i] not in _SENTENCE_END:
        return False
    if 0 < i < len(text) - 1:
        left, right = text[i - 1], text[i + 1]
        if (left.isalpha() and right.isalpha()) or (left.isdigit() and right.isdigit()):
            return False
    return True


def _find_cut(text: str, start: int, end: int) -> int:
    """Best break inside ``text[start:end]`` when the window stops short of the section end."""
    width = end - start
    half = start + width // 2

    for i in range(end - 1, half - 1, -1):
        if _is_sentence_end(text, i):
            if i + 1 - start >= width * 0.6:
                return i + 1
            break

    para = text.rfind("\n\n", half, end)
    if para != -1:
        return para

    for i in range(end - 1, half - 1, -1):
        if text[i].isspace():
            return i
    return end


def _outside_marker(text: str, start: int, offset: int) -> int:
    """Move ``offset`` off any page marker it would split."""
    lo = max(0, offset - 32)
    for m in PAGE_MARKER_RE.finditer(text, lo, offset + 32):
        if m.start() < offset < m.end():
            return m.start() if m.start() > start else m.end()
    return offset


def _page_range(text: str, start: int, end: int) -> Tuple[int, int]:
    """Pages touched by ``text[start:end]``, counting text before its first marker."""
    markers = list(PAGE_MARKER_RE.finditer(text, start, end))
    if not markers:
        page = _page_at(text, start)
        return page, page
    first = int(markers[0].group(1))
    if text[start : markers[0].start()].strip():
        first = _page_at(text, start)
    return first, int(markers[-1].group(1))


def _make_chunk(text: str, chunk_id: str, start: int, end: int) -> Chunk:
    body = strip_page_markers(text[start:end])
    first, last = _page_range(text, start, end)
    return Chunk(
        id=chunk_id,
        text=body,
        page_range_start=first,
        page_range_end=last,
        position=start,
        keywords=extract_keywords(body),
        topic=detect_topic(body),
    )


def chunk_text(
    text: str,
    chunk_size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
    min_chunk_chars: int = MIN_CHUNK_CHARS,
) -> List[Chunk]:
    """
    Split normalized, page-marked text into overlapping chunks.

    Windows of ``chunk_size`` characters advance by roughly
    ``chunk_size - overlap``; each one is cut back to a sentence, paragraph or
    word break. A section tail too short to keep joins the previous chunk.
    Chunk ids (``chunk_<n>``) follow document order.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if not 0 <= overlap < chunk_size:
        raise ValueError("overlap must satisfy 0 <= overlap < chunk_size")
    if not text or not text.strip():
        return []

    chunks: List[Chunk] = []
    for sec_start, sec_end in _section_spans(text, min_chunk_chars):
        start = sec_start
        while start < sec_end:
            end = min(start + chunk_size, sec_end)
            if end < sec_end:
                end = _outside_marker(text, start, _find_cut(text, start, end))

            body = strip_page_markers(text[start:end])
            if len(body) >= min_chunk_chars:
                chunks.append(_make_chunk(text, f"chunk_{len(chunks)}", start, end))
            elif end >= sec_end and chunks and chunks[-1].position >= sec_start:
                # a short section tail joins the previous window
                prev = chunks[-1]
                chunks[-1] = _make_chunk(text, prev.id, prev.position, sec_end)

            if end >= sec_end:
                break
            nxt = end - overlap
            if nxt > start:
                while nxt < end and not text[nxt - 1].isspace():
                    nxt += 1
                nxt = _outside_marker(text, nxt, nxt)
            if nxt <= start:
                nxt = end
            start = nxt
    return chunks
