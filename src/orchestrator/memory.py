"""
Per-topic conversation history with idle expiry.

Records are stored as ``{"messages": [...], "lastUpdated": <epoch ms>}``
under ``science_chat_<topic>``. A record not written to for ``timeout_ms`` is
expired: reads delete it, and ``sweep()`` removes any that were never read.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)

HISTORY_KEY_PREFIX = "science_chat_"
MAX_MESSAGES = 50
HISTORY_TIMEOUT_MS = 30 * 60 * 1000

ROLES = ("user", "assistant")


def now_ms() -> int:
    return int(time.time() * 1000)


def history_key(topic: str) -> str:
    return f"{HISTORY_KEY_PREFIX}{topic}"


@dataclass
class Message:
    """Single chat message."""

    role: str
    text: str
    timestamp: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        role = data["role"]
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        return cls(role=role, text=str(data["text"]), timestamp=int(data.get("timestamp", 0)))


class HistoryStore(Protocol):
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    def put(self, key: str, record: Dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class InMemoryHistoryStore:
    """Process-local store; records are copied in and out."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return {"messages": list(record["messages"]), "lastUpdated": record["lastUpdated"]}

    def put(self, key: str, record: Dict[str, Any]) -> None:
        with self._lock:
            self._records[key] = {
                "messages": list(record["messages"]),
                "lastUpdated": record["lastUpdated"],
            }

    def delete(self, key: str) -> None:
        with self._lock:
            self._records.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return sorted(self._records)


class ConversationHistory:
    """Bounded, expiring message lists keyed by topic."""

    def __init__(
        self,
        store: Optional[HistoryStore] = None,
        max_messages: int = MAX_MESSAGES,
        timeout_ms: int = HISTORY_TIMEOUT_MS,
        clock: Callable[[], int] = now_ms,
    ):
        if max_messages <= 0:
            raise ValueError("max_messages must be positive")
        self.store = store if store is not None else InMemoryHistoryStore()
        self.max_messages = max_messages
        self.timeout_ms = timeout_ms
        self.clock = clock

    def _expired(self, record: Dict[str, Any]) -> bool:
        last = int(record.get("lastUpdated", 0))
        return self.clock() - last >= self.timeout_ms

    def load(self, key: str) -> List[Message]:
        record = self.store.get(key)
        if record is None:
            return []
        if self._expired(record):
            self.store.delete(key)
            return []
        try:
            return [Message.from_dict(m) for m in record.get("messages", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Discarding unreadable history %s: %s", key, e)
            self.store.delete(key)
            return []

    def append(self, key: str, message: Message) -> List[Message]:
        """Add ``message``, trim to the newest ``max_messages`` and re-arm the expiry."""
        messages = self.load(key)
        messages.append(message)
        messages = messages[-self.max_messages :]
        self.store.put(
            key,
            {"messages": [m.to_dict() for m in messages], "lastUpdated": self.clock()},
        )
        return messages

    def recent(self, key: str, n: int) -> List[Message]:
        if n <= 0:
            return []
        return self.load(key)[-n:]

    def clear(self, key: str) -> None:
        self.store.delete(key)

    def sweep(self) -> int:
        """Delete every expired record; returns how many were removed."""
        removed = 0
        for key in self.store.keys():
            record = self.store.get(key)
            if record is not None and self._expired(record):
                self.store.delete(key)
                removed += 1
        if removed:
            logger.info("Expired %s conversation histories", removed)
        return removed
