"""
Build the science assistant for the API (used in lifespan).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from src.db import SQLHistoryStore
from src.llm import create_client
from src.orchestrator import ConversationHistory, ScienceAssistant

# Local PDFs are only read from here (env loaded by src.llm)
DOCUMENTS_DIR = Path(os.getenv("DOCUMENTS_DIR", "./documents")).resolve()

ALLOWED_URL_SCHEMES = ("http", "https")


def build_assistant() -> ScienceAssistant:
    """Assistant with env-configured model backends and SQL-backed history."""
    history = ConversationHistory(store=SQLHistoryStore())
    return ScienceAssistant(client=create_client(), history=history)


def resolve_document_path(path: str, root: Path = DOCUMENTS_DIR) -> Optional[Path]:
    """``path`` under ``root``, or None if it points outside it."""
    root = root.resolve()
    candidate = (root / path).resolve()
    if root not in candidate.parents:
        return None
    return candidate


def is_allowed_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ALLOWED_URL_SCHEMES and bool(parsed.netloc)
