from __future__ import annotations

import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base


def _get_database_url() -> str:
    """
    Return the database URL for conversation history.

    Falls back to a local SQLite file if not set, so tests and
    local development can run with minimal configuration.
    """
    return os.getenv("DATABASE_URL", "sqlite:///./science_chat.db")


DATABASE_URL = _get_database_url()


def make_engine(url: str = DATABASE_URL) -> Engine:
    """Create an engine and the history table if it is missing."""
    engine = create_engine(url, echo=False, future=True)
    Base.metadata.create_all(engine)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)
