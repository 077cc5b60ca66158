"""
Tests for prompt assembly (context blocks, history, instructions).
"""

from __future__ import annotations

import pytest

from src.generation import (
    REFUSAL_SENTENCE,
    SUBJECT_PREAMBLES,
    GenerationConfig,
    build_context,
    build_prompt,
    format_history,
)
from src.generation.prompts import DEFAULT_PREAMBLE, NO_CONTEXT_BLOCK
from src.ingest import Chunk, chunk_text, extract_pages
from src.orchestrator import Message
from src.rag import SearchIndex, search

PAGES = [
    "Chapter 1: Cells. The cell is the basic unit of life.",
    "Mitochondria produce ATP.",
    "Chapter 2: Motion. Velocity is the rate of change of position.",
]


@pytest.fixture
def sample_chunks() -> list[Chunk]:
    """Chunks of the three-page cells/motion document."""
    return chunk_text(extract_pages(PAGES))


@pytest.fixture
def sample_history() -> list[Message]:
    return [
        Message(role="user" if i % 2 == 0 else "assistant", text=f"message {i}", timestamp=i)
        for i in range(8)
    ]


def test_build_context_labels_pages(sample_chunks: list[Chunk]):
    """Each block carries its position and page range; blocks are separated by ---."""
    context = build_context(sample_chunks)
    blocks = context.split("\n\n---\n\n")
    assert len(blocks) == 2
    assert blocks[0].startswith("[Context 1 - Pages 1-2]:\nChapter 1: Cells.")
    assert blocks[1] == (
        "[Context 2 - Pages 3-3]:\nChapter 2: Motion. Velocity is the rate of change of position."
    )


def test_build_context_empty():
    """No chunks, no context."""
    assert build_context([]) == ""


def test_format_history_uses_last_messages(sample_history: list[Message]):
    """Only the newest messages are kept, labelled Student/Assistant."""
    lines = format_history(sample_history, limit=6).split("\n")
    assert lines == [
        "Student: message 2",
        "Assistant: message 3",
        "Student: message 4",
        "Assistant: message 5",
        "Student: message 6",
        "Assistant: message 7",
    ]
    assert format_history(sample_history, limit=0) == ""


def test_build_prompt_contract(sample_chunks: list[Chunk], sample_history: list[Message]):
    """The prompt holds context, history, chapter, question and the fixed instructions."""
    prompt = build_prompt(sample_chunks, "What do mitochondria do?", "Cells", "biology", sample_history)
    assert prompt.startswith(SUBJECT_PREAMBLES["biology"])
    assert "[Context 1 - Pages 1-2]:" in prompt
    assert "PREVIOUS CONVERSATION:\nStudent: message 2" in prompt
    assert "Student: message 0" not in prompt
    assert "CURRENT CHAPTER/TOPIC: Cells" in prompt
    assert "STUDENT QUESTION: What do mitochondria do?" in prompt
    assert "ONLY the information provided in the CONTEXT" in prompt
    assert f'respond exactly: "{REFUSAL_SENTENCE}"' in prompt
    assert "plain text formatting only" in prompt


def test_build_prompt_without_history_or_subject(sample_chunks: list[Chunk]):
    """No history block without history; unknown subjects get the generic preamble."""
    prompt = build_prompt(sample_chunks, "What is velocity?", None, None, [])
    assert prompt.startswith(DEFAULT_PREAMBLE)
    assert "PREVIOUS CONVERSATION" not in prompt
    assert "CURRENT CHAPTER/TOPIC: General" in prompt


def test_build_prompt_history_window(sample_chunks: list[Chunk], sample_history: list[Message]):
    """The history window size comes from GenerationConfig."""
    config = GenerationConfig(history_messages=2)
    prompt = build_prompt(sample_chunks, "q", "Cells", "biology", sample_history, config=config)
    assert "Student: message 6\nAssistant: message 7" in prompt
    assert "message 5" not in prompt


def test_build_prompt_is_deterministic(sample_chunks: list[Chunk]):
    """Same input, same prompt."""
    first = build_prompt(sample_chunks, "What is a cell?", "Cells", "biology", [])
    second = build_prompt(sample_chunks, "What is a cell?", "Cells", "biology", [])
    assert first == second


def test_refusal_scenario(sample_chunks: list[Chunk]):
    """An unrelated question yields no context and a prompt demanding the refusal sentence."""
    index = SearchIndex.from_chunks(sample_chunks)
    query = "How do volcanoes form?"
    context = search(index, sample_chunks, query)
    assert context == []

    prompt = build_prompt(context, query, "Cells", "biology", [])
    assert NO_CONTEXT_BLOCK in prompt
    assert "Mitochondria" not in prompt
    assert REFUSAL_SENTENCE in prompt
    assert "If the answer is completely absent from the CONTEXT" in prompt
