"""
API routes: health, documents, topic, search, chat, conversation.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Union

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from src.ingest import Chunk, ExtractionFailed, fetch_document
from src.orchestrator import Message, ScienceAssistant
from src.rag import IndexBuildFailed

from .deps import is_allowed_url, resolve_document_path
from .models import (
    ChatRequest,
    ChatResponse,
    ChunkSummary,
    ConversationResponse,
    DocumentRequest,
    DocumentResponse,
    HealthResponse,
    MessageOut,
    SearchHit,
    SearchRequest,
    SearchResponse,
    TopicRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

SNIPPET_CHARS = 300


def _get_assistant(request: Request) -> Optional[ScienceAssistant]:
    return getattr(request.app.state, "assistant", None)


def _unavailable() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"detail": "Service unavailable: assistant not initialized."},
    )


def _no_document() -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={"detail": "No textbook loaded. POST /api/documents first."},
    )


def _snippet(chunk: Chunk) -> str:
    text = chunk.text
    return (text[:SNIPPET_CHARS] + "…") if len(text) > SNIPPET_CHARS else text


def _messages_out(messages: List[Message]) -> List[MessageOut]:
    return [MessageOut(role=m.role, text=m.text, timestamp=m.timestamp) for m in messages]


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Health check."""
    assistant = _get_assistant(request)
    if assistant is None:
        return HealthResponse(status="ok")
    return HealthResponse(
        status="ok",
        document_loaded=assistant.has_document,
        chunks_loaded=len(assistant.chunks),
        chapter=assistant.chapter,
    )


def _load(assistant: ScienceAssistant, source: Union[str, Path]):
    if isinstance(source, str):
        source = fetch_document(source)
    return assistant.load_document(source)


@router.post("/documents", response_model=DocumentResponse)
async def load_document(request: Request, body: DocumentRequest) -> DocumentResponse | JSONResponse:
    """Load a textbook PDF from the documents directory or an http(s) URL and index it."""
    assistant = _get_assistant(request)
    if assistant is None:
        return _unavailable()
    if not body.path and not body.url:
        return JSONResponse(status_code=422, content={"detail": "Provide either path or url."})
    source: Union[str, Path]
    if body.url:
        if not is_allowed_url(body.url):
            return JSONResponse(status_code=422, content={"detail": "Only http and https URLs are supported."})
        source = body.url
    else:
        resolved = resolve_document_path(body.path)
        if resolved is None:
            return JSONResponse(
                status_code=422,
                content={"detail": "Document path must be inside the documents directory."},
            )
        source = resolved
    try:
        result = await asyncio.to_thread(_load, assistant, source)
    except ExtractionFailed as e:
        logger.warning("Document load failed: %s", e)
        return JSONResponse(status_code=422, content={"detail": str(e), "retryable": True})
    except IndexBuildFailed as e:
        logger.error("Index build failed: %s", e)
        return JSONResponse(status_code=500, content={"detail": str(e), "retryable": True})
    if result is None:
        return JSONResponse(
            status_code=409,
            content={"detail": "Superseded by a newer document load."},
        )
    return DocumentResponse(
        generation=result.generation,
        chunks=result.chunk_count,
        characters=result.text_length,
    )


@router.post("/topic", response_model=ConversationResponse)
async def switch_topic(request: Request, body: TopicRequest) -> ConversationResponse | JSONResponse:
    """Switch the current chapter; returns that chapter's saved conversation."""
    assistant = _get_assistant(request)
    if assistant is None:
        return _unavailable()
    messages = await asyncio.to_thread(assistant.switch_topic, body.chapter, body.subject)
    return ConversationResponse(
        chapter=assistant.chapter,
        subject=assistant.subject,
        messages=_messages_out(messages),
    )


@router.post("/search", response_model=SearchResponse)
async def search_endpoint(request: Request, body: SearchRequest) -> SearchResponse | JSONResponse:
    """Direct search (no generation)."""
    assistant = _get_assistant(request)
    if assistant is None:
        return _unavailable()
    if not assistant.has_document:
        return _no_document()
    results = await asyncio.to_thread(assistant.search, body.query)
    hits = [
        SearchHit(
            chunk_id=c.id,
            pages=c.pages,
            topic=c.topic,
            keywords=list(c.keywords),
            text=c.text,
        )
        for c in results[: body.top_k]
    ]
    return SearchResponse(query=body.query, results=hits)


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, body: ChatRequest) -> ChatResponse | JSONResponse:
    """Answer a question about the loaded textbook in the current chapter."""
    assistant = _get_assistant(request)
    if assistant is None:
        return _unavailable()
    if not assistant.has_document:
        return _no_document()
    reply = await asyncio.to_thread(assistant.ask, body.query)
    return ChatResponse(
        ok=reply.ok,
        answer=reply.text,
        error=reply.error,
        sources=[ChunkSummary(id=c.id, pages=c.pages, snippet=_snippet(c)) for c in reply.sources],
    )


@router.get("/conversation", response_model=ConversationResponse)
async def get_conversation(request: Request) -> ConversationResponse | JSONResponse:
    """Saved conversation for the current chapter."""
    assistant = _get_assistant(request)
    if assistant is None:
        return _unavailable()
    messages = await asyncio.to_thread(assistant.history.load, assistant.history_key)
    return ConversationResponse(
        chapter=assistant.chapter,
        subject=assistant.subject,
        messages=_messages_out(messages),
    )


@router.delete("/conversation", response_model=None)
async def clear_conversation(request: Request) -> dict | JSONResponse:
    """Clear conversation history for the current chapter."""
    assistant = _get_assistant(request)
    if assistant is None:
        return _unavailable()
    await asyncio.to_thread(assistant.clear_history)
    return {"ok": True, "chapter": assistant.chapter}
