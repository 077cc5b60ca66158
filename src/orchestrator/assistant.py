"""
Science assistant session: one loaded textbook, one current topic.

Ties ingestion, retrieval, prompt assembly and the model client together and
keeps the per-topic conversation history.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from src.generation import GenerationConfig, build_prompt
from src.ingest import GENERAL_TOPIC, Chunk, chunk_text, detect_topic, extract
from src.llm import (
    GEMINI_API_KEY,
    GenerationOptions,
    ModelClient,
    ModelError,
    RequestCancelled,
    RequestContext,
    create_client,
    describe_error,
)
from src.rag import RAGConfig, SearchIndex, augment_relationship_context, rerank, search

from .memory import ConversationHistory, Message, history_key, now_ms

logger = logging.getLogger(__name__)

DEFAULT_CHAPTER = "General"


@dataclass
class AssistantReply:
    """Outcome of one question: an answer or an inline error."""

    ok: bool
    text: str
    error: Optional[str] = None
    sources: List[Chunk] = field(default_factory=list)


@dataclass
class LoadResult:
    generation: int
    chunk_count: int
    text_length: int


class ScienceAssistant:
    """Question answering over one textbook with per-topic history."""

    def __init__(
        self,
        client: Optional[ModelClient] = None,
        history: Optional[ConversationHistory] = None,
        api_key: Optional[str] = None,
        rag_config: Optional[RAGConfig] = None,
        generation_config: Optional[GenerationConfig] = None,
        extractor: Callable[[Any], str] = extract,
        clock: Callable[[], int] = now_ms,
    ):
        self.client = client or create_client()
        self.history = history or ConversationHistory(clock=clock)
        self.api_key = api_key if api_key is not None else GEMINI_API_KEY
        self.rag_config = rag_config or RAGConfig()
        self.generation_config = generation_config or GenerationConfig()
        self.options = GenerationOptions.from_config(self.generation_config)
        self.extractor = extractor
        self.clock = clock

        self.chapter = DEFAULT_CHAPTER
        self.subject: Optional[str] = None
        self._chunks: List[Chunk] = []
        self._index: Optional[SearchIndex] = None
        self._generation = 0
        self._document = 0
        self._request: Optional[RequestContext] = None
        self._lock = threading.Lock()

    @property
    def chunks(self) -> List[Chunk]:
        return list(self._chunks)

    @property
    def has_document(self) -> bool:
        return bool(self._chunks)

    @property
    def history_key(self) -> str:
        return history_key(self.chapter)

    def load_document(self, document: Any) -> Optional[LoadResult]:
        """
        Extract, chunk and index ``document``.

        Returns None when a newer load started meanwhile; its result wins.
        Committing a load cancels any pending answer.
        ExtractionFailed and IndexBuildFailed propagate to the caller.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation

        text = self.extractor(document)
        cfg = self.rag_config
        chunks = chunk_text(
            text,
            chunk_size=cfg.chunk_size,
            overlap=cfg.chunk_overlap,
            min_chunk_chars=cfg.min_chunk_chars,
        )
        index = SearchIndex.from_chunks(chunks)

        with self._lock:
            if generation != self._generation:
                logger.warning("Discarding superseded document load %s", generation)
                return None
            self._chunks = chunks
            self._index = index
            self._document = generation
            # replies to the previous document are stale
            if self._request is not None:
                self._request.cancel()
                self._request = None
        logger.info("Loaded document: %s chunks from %s characters", len(chunks), len(text))
        return LoadResult(generation=generation, chunk_count=len(chunks), text_length=len(text))

    def switch_topic(self, chapter: str, subject: Optional[str] = None) -> List[Message]:
        """Cancel any pending answer and return the new topic's history."""
        self.cancel_pending()
        self.chapter = chapter.strip() or DEFAULT_CHAPTER
        if subject is None:
            detected = detect_topic(self.chapter)
            subject = None if detected == GENERAL_TOPIC else detected
        self.subject = subject
        return self.history.load(self.history_key)

    def cancel_pending(self) -> None:
        with self._lock:
            if self._request is not None:
                self._request.cancel()
                self._request = None

    def search(self, query: str) -> List[Chunk]:
        """Ranked context chunks for ``query`` in the loaded document."""
        with self._lock:
            index, chunks = self._index, self._chunks
        if not chunks:
            return []
        cfg = self.rag_config
        results = search(index, chunks, query, top_k=cfg.top_k, config=cfg)
        if cfg.use_reranker:
            hint = None if self.chapter == DEFAULT_CHAPTER else self.chapter
            results = rerank(results, query, hint)
        if cfg.use_relationship_context:
            results = augment_relationship_context(results, chunks, query)
        return results

    def ask(self, query: str) -> AssistantReply:
        """Answer ``query``; model failures come back as an inline error reply."""
        query = (query or "").strip()
        if not query:
            return AssistantReply(ok=False, text="", error="Please enter a question.")
        if not self.has_document:
            return AssistantReply(ok=False, text="", error="Please load a textbook first.")
        if not self.api_key and all(getattr(b, "requires_api_key", True) for b in self.client.backends):
            return AssistantReply(
                ok=False,
                text="",
                error="Gemini API key is not configured. Please check your configuration.",
            )

        context = RequestContext()
        with self._lock:
            if self._request is not None:
                self._request.cancel()
            self._request = context
            document = self._document

        key = self.history_key
        previous = self.history.load(key)
        self.history.append(key, Message(role="user", text=query, timestamp=self.clock()))

        sources = self.search(query)
        prompt = build_prompt(
            sources,
            query,
            self.chapter,
            self.subject,
            previous,
            config=self.generation_config,
        )

        try:
            answer = self.client.complete(prompt, self.api_key, self.options, context)
        except RequestCancelled as e:
            logger.info("Dropping superseded request for %s", key)
            return AssistantReply(ok=False, text="", error=describe_error(e), sources=sources)
        except ModelError as e:
            logger.warning("Model request failed: %s", e)
            return AssistantReply(ok=False, text="", error=describe_error(e), sources=sources)
        finally:
            with self._lock:
                if self._request is context:
                    self._request = None

        if context.cancelled or key != self.history_key or document != self._document:
            logger.info("Dropping stale reply for %s", key)
            return AssistantReply(ok=False, text="", error=describe_error(RequestCancelled()), sources=sources)

        self.history.append(key, Message(role="assistant", text=answer, timestamp=self.clock()))
        return AssistantReply(ok=True, text=answer, sources=sources)

    def clear_history(self) -> None:
        self.history.clear(self.history_key)
