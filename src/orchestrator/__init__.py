"""
Orchestrator: assistant session flow and per-topic conversation history.
"""

from .assistant import AssistantReply, LoadResult, ScienceAssistant
from .memory import (
    ConversationHistory,
    HistoryStore,
    InMemoryHistoryStore,
    Message,
    history_key,
)

__all__ = [
    "AssistantReply",
    "LoadResult",
    "ScienceAssistant",
    "ConversationHistory",
    "HistoryStore",
    "InMemoryHistoryStore",
    "Message",
    "history_key",
]
