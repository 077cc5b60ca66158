"""
Text-completion client with retries and model fallback.

Backends are tried in order (each configured Gemini model, then an optional
OpenAI-compatible endpoint). Rate limits and transient failures are retried
with exponential backoff; quota and missing-model errors move on to the next
backend; everything else is raised at once.
"""

from __future__ import annotations

import logging
import os
import random
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from dotenv import load_dotenv

from .backends import DEFAULT_GEMINI_API_BASE, GeminiBackend, OpenAICompatibleBackend
from .errors import (
    ModelError,
    ModelNotFound,
    QuotaExceeded,
    RateLimited,
    RequestCancelled,
    TransientError,
)

# Load .env file if it exists
project_root = Path(__file__).resolve().parents[2]
env_file = project_root / ".env"
if env_file.exists():
    load_dotenv(env_file)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", DEFAULT_GEMINI_API_BASE)
GEMINI_MODELS = [
    m.strip()
    for m in os.getenv("GEMINI_MODELS", "gemini-1.5-flash,gemini-2.0-flash,gemini-1.5-pro").split(",")
    if m.strip()
]

# Optional OpenAI-compatible fallback (Z.AI/GLM, DeepSeek, etc.)
LLM_BASE_URL = os.getenv("LLM_BASE_URL")
LLM_API_KEY = os.getenv("LLM_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL")

logger = logging.getLogger(__name__)


@dataclass
class GenerationOptions:
    """Sampling parameters sent with every request."""

    temperature: float = 0.2
    max_output_tokens: int = 2048
    top_k: int = 40
    top_p: float = 0.95
    safety_threshold: str = "BLOCK_ONLY_HIGH"

    @classmethod
    def from_config(cls, config) -> "GenerationOptions":
        return cls(
            temperature=config.temperature,
            max_output_tokens=config.max_output_tokens,
            top_k=config.top_k,
            top_p=config.top_p,
        )


@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    rate_limit_delay: float = 5.0
    max_delay: float = 30.0
    jitter: float = 0.1

    def delay_for(self, error: ModelError, attempt: int) -> float:
        """Wait before retry number ``attempt`` (1-based) after ``error``."""
        if isinstance(error, RateLimited) and error.retry_after is not None:
            return min(error.retry_after, self.max_delay)
        base = self.rate_limit_delay if isinstance(error, RateLimited) else self.base_delay
        delay = min(base * (2 ** (attempt - 1)), self.max_delay)
        return delay + random.uniform(0, delay * self.jitter)


class RequestContext:
    """Cancellation token for one model request."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True if cancelled meanwhile."""
        return self._cancelled.wait(max(0.0, seconds))

    def check(self) -> None:
        if self.cancelled:
            raise RequestCancelled("Request was cancelled")


class Backend(Protocol):
    name: str

    def generate(self, prompt: str, api_key: Optional[str], options: GenerationOptions) -> str:
        ...


_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_RE = re.compile(r"\*(.*?)\*")
_HEADING_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)
_BULLET_RE = re.compile(r"^\s*[-*+]\s+", re.MULTILINE)


def strip_markup(text: str) -> str:
    """Remove markdown emphasis and heading markers; normalize bullets to ``- ``."""
    text = _BOLD_RE.sub(r"\1", text)
    text = _ITALIC_RE.sub(r"\1", text)
    text = _HEADING_RE.sub("", text)
    text = _BULLET_RE.sub("- ", text)
    return text.strip()


class ModelClient:
    """Send prompts to the first backend that answers."""

    def __init__(
        self,
        backends: Sequence[Backend],
        retry: Optional[RetryPolicy] = None,
        options: Optional[GenerationOptions] = None,
    ):
        self.backends: List[Backend] = list(backends)
        self.retry = retry or RetryPolicy()
        self.options = options or GenerationOptions()

    def complete(
        self,
        prompt: str,
        api_key: Optional[str],
        options: Optional[GenerationOptions] = None,
        context: Optional[RequestContext] = None,
    ) -> str:
        """
        Generate a plain-text completion for ``prompt``.

        Raises:
            ModelError: the last backend's error once every backend failed,
                or at once for auth, blocked-content and malformed responses.
            RequestCancelled: if ``context`` is cancelled before a reply arrives.
        """
        options = options or self.options
        context = context or RequestContext()
        last_error: Optional[ModelError] = None

        for backend in self.backends:
            for attempt in range(1, self.retry.max_attempts + 1):
                context.check()
                try:
                    text = backend.generate(prompt, api_key, options)
                except (RateLimited, TransientError) as e:
                    last_error = e
                    if attempt >= self.retry.max_attempts:
                        logger.warning("%s failed after %s attempts: %s", backend.name, attempt, e)
                        break
                    delay = self.retry.delay_for(e, attempt)
                    logger.warning(
                        "%s: %s. Retrying in %s s (attempt %s/%s)",
                        backend.name,
                        e,
                        round(delay, 1),
                        attempt,
                        self.retry.max_attempts,
                    )
                    if context.wait(delay):
                        raise RequestCancelled("Request was cancelled") from e
                    continue
                except (QuotaExceeded, ModelNotFound) as e:
                    last_error = e
                    logger.warning("%s unavailable, trying next backend: %s", backend.name, e)
                    break
                context.check()
                return strip_markup(text)

        if last_error is None:
            raise ModelError("No model backends configured")
        raise last_error


def create_client(
    models: Optional[Sequence[str]] = None,
    base_url: Optional[str] = None,
    retry: Optional[RetryPolicy] = None,
) -> ModelClient:
    """Create a client from env: Gemini models first, then the OpenAI-compatible fallback."""
    backends: List[Backend] = [
        GeminiBackend(model, base_url=base_url or GEMINI_API_BASE) for model in (models or GEMINI_MODELS)
    ]
    if LLM_BASE_URL and LLM_MODEL:
        backends.append(OpenAICompatibleBackend(LLM_MODEL, LLM_BASE_URL, api_key=LLM_API_KEY))
    return ModelClient(backends, retry=retry)
