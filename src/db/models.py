from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import JSON, BigInteger, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class ConversationRecord(Base):
    __tablename__ = "conversation_history"

    # science_chat_<topic>
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    # {"messages": [...], "lastUpdated": <epoch ms>}
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    last_updated: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
