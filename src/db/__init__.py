"""
Persistence for conversation history (SQLAlchemy, SQLite by default).
"""

from .history_store import SQLHistoryStore
from .models import Base, ConversationRecord
from .session import DATABASE_URL, make_engine, make_session_factory

__all__ = [
    "SQLHistoryStore",
    "Base",
    "ConversationRecord",
    "DATABASE_URL",
    "make_engine",
    "make_session_factory",
]
