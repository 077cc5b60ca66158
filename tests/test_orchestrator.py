"""
Tests for orchestrator: conversation history and the science assistant session.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from src.ingest import ExtractionFailed, extract_pages
from src.llm import GeminiBackend, RateLimited
from src.orchestrator import (
    ConversationHistory,
    InMemoryHistoryStore,
    Message,
    ScienceAssistant,
    history_key,
)
from src.orchestrator import assistant as assistant_module
from src.orchestrator.memory import HISTORY_TIMEOUT_MS

PAGES = [
    "Chapter 1: Cells. The cell is the basic unit of life.",
    "Mitochondria produce ATP.",
    "Chapter 2: Motion. Velocity is the rate of change of position.",
]

MINUTE_MS = 60 * 1000


class FakeClock:
    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_000_000)


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock()
    client.backends = []
    client.complete.return_value = "The cell is the basic unit of life."
    return client


@pytest.fixture
def assistant(client: MagicMock, clock: FakeClock) -> ScienceAssistant:
    a = ScienceAssistant(
        client=client,
        api_key="test-key",
        extractor=lambda document: extract_pages(PAGES),
        clock=clock,
    )
    a.load_document("book.pdf")
    return a


# --- Conversation history ---


def test_history_key_prefix():
    assert history_key("Chapter 1") == "science_chat_Chapter 1"


def test_history_keeps_newest_messages(clock: FakeClock):
    """Appending past the limit drops the oldest messages."""
    history = ConversationHistory(max_messages=3, clock=clock)
    for i in range(5):
        history.append("k", Message(role="user", text=f"m{i}", timestamp=i))
    assert [m.text for m in history.load("k")] == ["m2", "m3", "m4"]


def test_history_expires_after_idle_timeout(clock: FakeClock):
    """A record untouched for the timeout reads as empty and is deleted."""
    store = InMemoryHistoryStore()
    history = ConversationHistory(store=store, clock=clock)
    history.append("k", Message(role="user", text="hello"))

    clock.now += HISTORY_TIMEOUT_MS - 1
    assert len(history.load("k")) == 1

    clock.now += 1
    assert history.load("k") == []
    assert store.keys() == []


def test_history_append_rearms_expiry(clock: FakeClock):
    """Each write restarts the idle timer."""
    history = ConversationHistory(clock=clock)
    history.append("k", Message(role="user", text="first"))
    clock.now += 20 * MINUTE_MS
    history.append("k", Message(role="assistant", text="second"))
    clock.now += 20 * MINUTE_MS
    assert [m.text for m in history.load("k")] == ["first", "second"]


def test_history_sweep_removes_only_expired(clock: FakeClock):
    """sweep() deletes expired records that were never read again."""
    store = InMemoryHistoryStore()
    history = ConversationHistory(store=store, clock=clock)
    history.append("old", Message(role="user", text="a"))
    clock.now += 20 * MINUTE_MS
    history.append("fresh", Message(role="user", text="b"))
    clock.now += 15 * MINUTE_MS

    assert history.sweep() == 1
    assert store.keys() == ["fresh"]


def test_history_discards_unreadable_record(clock: FakeClock):
    """Records with unknown roles are treated as absent and removed."""
    store = InMemoryHistoryStore()
    store.put("k", {"messages": [{"role": "system", "text": "x"}], "lastUpdated": clock()})
    history = ConversationHistory(store=store, clock=clock)
    assert history.load("k") == []
    assert store.get("k") is None


def test_history_recent_and_clear(clock: FakeClock):
    history = ConversationHistory(clock=clock)
    for i in range(4):
        history.append("k", Message(role="user", text=str(i)))
    assert [m.text for m in history.recent("k", 2)] == ["2", "3"]
    assert history.recent("k", 0) == []
    history.clear("k")
    assert history.load("k") == []


# --- Science assistant ---


def test_load_document_reports_counts(assistant: ScienceAssistant):
    """Loading chunks and indexes the extracted text."""
    assert assistant.has_document
    assert [c.id for c in assistant.chunks] == ["chunk_0", "chunk_1"]
    result = assistant.load_document("again.pdf")
    assert result is not None
    assert result.generation == 2
    assert result.chunk_count == 2
    assert result.text_length == len(extract_pages(PAGES))


def test_ask_returns_answer_and_records_history(assistant: ScienceAssistant, client: MagicMock):
    """A successful answer is returned with its sources and stored after the question."""
    reply = assistant.ask("What is the basic unit of life?")

    assert reply.ok
    assert reply.text == "The cell is the basic unit of life."
    assert reply.sources[0].id == "chunk_0"

    prompt, api_key = client.complete.call_args.args[:2]
    assert api_key == "test-key"
    assert "[Context 1 - Pages 1-2]:" in prompt
    assert "STUDENT QUESTION: What is the basic unit of life?" in prompt

    messages = assistant.history.load(assistant.history_key)
    assert [(m.role, m.text) for m in messages] == [
        ("user", "What is the basic unit of life?"),
        ("assistant", "The cell is the basic unit of life."),
    ]


def test_follow_up_prompt_includes_previous_turns(assistant: ScienceAssistant, client: MagicMock):
    """The second question's prompt carries the first exchange."""
    assistant.ask("What is the basic unit of life?")
    client.complete.return_value = "ATP is made by mitochondria."
    assistant.ask("What do mitochondria produce?")

    prompt = client.complete.call_args.args[0]
    assert "PREVIOUS CONVERSATION:" in prompt
    assert "Student: What is the basic unit of life?" in prompt
    assert "Assistant: The cell is the basic unit of life." in prompt
    assert "Student: What do mitochondria produce?" not in prompt


def test_model_error_becomes_inline_reply(assistant: ScienceAssistant, client: MagicMock):
    """Model failures are reported in the reply; the question stays in history."""
    client.complete.side_effect = RateLimited("429")
    reply = assistant.ask("What is velocity?")

    assert not reply.ok
    assert reply.error == "Rate limit exceeded. Please try again in a moment."
    messages = assistant.history.load(assistant.history_key)
    assert [m.role for m in messages] == ["user"]


def test_switch_topic_keeps_separate_histories(assistant: ScienceAssistant):
    """Each chapter has its own history; switching back restores it."""
    assistant.ask("What is the basic unit of life?")

    assert assistant.switch_topic("Chapter 2: Motion") == []
    assert assistant.subject == "physics"
    assert assistant.history_key == "science_chat_Chapter 2: Motion"

    restored = assistant.switch_topic("General")
    assert assistant.subject is None
    assert len(restored) == 2


def test_switch_topic_explicit_subject(assistant: ScienceAssistant):
    assistant.switch_topic("Unit 4", subject="chemistry")
    assert assistant.subject == "chemistry"
    assert assistant.chapter == "Unit 4"


def test_switch_topic_cancels_pending_answer(assistant: ScienceAssistant, client: MagicMock):
    """A reply arriving after a topic switch is dropped, not stored anywhere."""

    def switch_then_answer(prompt, api_key, options, context):
        assistant.switch_topic("Chapter 2: Motion")
        return "late answer"

    client.complete.side_effect = switch_then_answer
    reply = assistant.ask("What is the basic unit of life?")

    assert not reply.ok
    assert reply.error == "The request was cancelled."
    assert assistant.history.load("science_chat_General")[-1].role == "user"
    assert assistant.history.load(assistant.history_key) == []


def test_document_load_cancels_pending_answer(assistant: ScienceAssistant, client: MagicMock):
    """A reply about the previous textbook is dropped once a new one is loaded."""

    def load_then_answer(prompt, api_key, options, context):
        assistant.load_document("other.pdf")
        return "answer about the old book"

    client.complete.side_effect = load_then_answer
    reply = assistant.ask("What is the basic unit of life?")

    assert not reply.ok
    assert reply.error == "The request was cancelled."
    messages = assistant.history.load(assistant.history_key)
    assert [m.role for m in messages] == ["user"]


def test_search_uses_one_document_snapshot(assistant: ScienceAssistant, monkeypatch):
    """Index and chunks come from the same load even if another load lands mid-search."""
    seen = {}
    real_search = assistant_module.search

    def search_during_reload(index, chunks, query, **kwargs):
        seen["index"] = list(index.chunk_ids)
        seen["chunks"] = chunks
        assistant.load_document("other.pdf")
        return real_search(index, chunks, query, **kwargs)

    def record_augment(results, chunks, query):
        seen["augment_chunks"] = chunks
        return list(results)

    monkeypatch.setattr(assistant_module, "search", search_during_reload)
    monkeypatch.setattr(assistant_module, "augment_relationship_context", record_augment)
    assistant.search("basic unit of life")

    assert seen["index"] == [c.id for c in seen["chunks"]]
    assert seen["augment_chunks"] is seen["chunks"]


def test_newer_load_supersedes_older(client: MagicMock, clock: FakeClock):
    """A load started while another is extracting wins; the older one returns None."""
    calls = []

    def extractor(document):
        calls.append(document)
        if document == "first.pdf":
            assert assistant.load_document("second.pdf") is not None
            return extract_pages(PAGES[:2])
        return extract_pages(PAGES[2:])

    assistant = ScienceAssistant(client=client, api_key="test-key", extractor=extractor, clock=clock)
    assert assistant.load_document("first.pdf") is None
    assert calls == ["first.pdf", "second.pdf"]
    assert [c.topic for c in assistant.chunks] == ["physics"]


def test_extraction_failure_propagates(client: MagicMock, clock: FakeClock):
    def extractor(document):
        raise ExtractionFailed("No text could be extracted from this PDF.")

    assistant = ScienceAssistant(client=client, api_key="test-key", extractor=extractor, clock=clock)
    with pytest.raises(ExtractionFailed):
        assistant.load_document("scan.pdf")
    assert not assistant.has_document


def test_ask_without_document(client: MagicMock, clock: FakeClock):
    assistant = ScienceAssistant(client=client, api_key="test-key", clock=clock)
    reply = assistant.ask("What is a cell?")
    assert not reply.ok
    assert reply.error == "Please load a textbook first."
    client.complete.assert_not_called()


def test_ask_empty_query(assistant: ScienceAssistant, client: MagicMock):
    reply = assistant.ask("   ")
    assert not reply.ok
    assert reply.error == "Please enter a question."
    client.complete.assert_not_called()


def test_ask_without_api_key(clock: FakeClock):
    """Without a key and with only key-requiring backends, no request is made."""
    client = MagicMock()
    client.backends = [GeminiBackend("gemini-1.5-flash")]
    assistant = ScienceAssistant(
        client=client, api_key="", extractor=lambda document: extract_pages(PAGES), clock=clock
    )
    assistant.load_document("book.pdf")
    reply = assistant.ask("What is a cell?")
    assert not reply.ok
    assert "API key" in reply.error
    client.complete.assert_not_called()


def test_clear_history(assistant: ScienceAssistant):
    assistant.ask("What is the basic unit of life?")
    assistant.clear_history()
    assert assistant.history.load(assistant.history_key) == []
