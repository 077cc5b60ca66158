"""
Request and response models for the science assistant API.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class DocumentRequest(BaseModel):
    """Request body for POST /api/documents (one of path or url)."""

    path: Optional[str] = Field(None, description="Path of a textbook PDF inside DOCUMENTS_DIR")
    url: Optional[str] = Field(None, description="URL of a textbook PDF")


class DocumentResponse(BaseModel):
    """Response for POST /api/documents."""

    generation: int
    chunks: int
    characters: int


class TopicRequest(BaseModel):
    """Request body for POST /api/topic."""

    chapter: str = Field(..., min_length=1, description="Current chapter or topic name")
    subject: Optional[str] = Field(None, description="biology, physics or chemistry")


class MessageOut(BaseModel):
    role: str
    text: str
    timestamp: int = 0


class ConversationResponse(BaseModel):
    """Response for /api/topic and GET /api/conversation."""

    chapter: str
    subject: Optional[str] = None
    messages: List[MessageOut] = Field(default_factory=list)


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""

    query: str = Field(..., min_length=1, description="Student question")


class ChunkSummary(BaseModel):
    """Summary of a chunk used in the answer."""

    id: str
    pages: str
    snippet: str = ""


class ChatResponse(BaseModel):
    """Response for POST /api/chat."""

    ok: bool
    answer: str = ""
    error: Optional[str] = None
    sources: List[ChunkSummary] = Field(default_factory=list)


class SearchRequest(BaseModel):
    """Request body for POST /api/search."""

    query: str = Field(..., min_length=1)
    top_k: int = Field(8, ge=1, le=10)


class SearchHit(BaseModel):
    """Single search result."""

    chunk_id: str
    pages: str
    topic: str
    keywords: List[str] = Field(default_factory=list)
    text: str


class SearchResponse(BaseModel):
    """Response for POST /api/search."""

    query: str
    results: List[SearchHit] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    document_loaded: bool = False
    chunks_loaded: int = 0
    chapter: Optional[str] = None
