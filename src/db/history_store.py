"""
SQL-backed store for conversation history records.

Failures are logged and reported as missing data so a broken database never
interrupts a conversation.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .models import ConversationRecord
from .session import make_engine, make_session_factory

logger = logging.getLogger(__name__)


class SQLHistoryStore:
    """Key/value store of ``{"messages": [...], "lastUpdated": ms}`` records."""

    def __init__(self, session_factory: Optional[sessionmaker] = None, url: Optional[str] = None):
        if session_factory is None:
            engine = make_engine(url) if url else make_engine()
            session_factory = make_session_factory(engine)
        self._factory = session_factory

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            with self._factory() as db:
                row = db.get(ConversationRecord, key)
                return dict(row.payload) if row is not None else None
        except SQLAlchemyError as e:
            logger.warning("Could not read history %s: %s", key, e)
            return None

    def put(self, key: str, record: Dict[str, Any]) -> None:
        try:
            with self._factory() as db:
                row = db.get(ConversationRecord, key)
                if row is None:
                    row = ConversationRecord(key=key)
                    db.add(row)
                row.payload = record
                row.last_updated = int(record.get("lastUpdated", 0))
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Could not save history %s: %s", key, e)

    def delete(self, key: str) -> None:
        try:
            with self._factory() as db:
                row = db.get(ConversationRecord, key)
                if row is not None:
                    db.delete(row)
                    db.commit()
        except SQLAlchemyError as e:
            logger.warning("Could not delete history %s: %s", key, e)

    def keys(self) -> List[str]:
        try:
            with self._factory() as db:
                return list(db.scalars(select(ConversationRecord.key).order_by(ConversationRecord.key)))
        except SQLAlchemyError as e:
            logger.warning("Could not list history keys: %s", e)
            return []
