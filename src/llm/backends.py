"""
Model backends: Gemini ``generateContent`` over HTTP and OpenAI-compatible chat APIs.

A backend turns one prompt into text or raises one of the ``ModelError``
types; retries and fallback between backends live in ``ModelClient``.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import openai
import requests
from openai import OpenAI

from .errors import (
    AuthError,
    ContentBlocked,
    MalformedResponse,
    ModelError,
    ModelNotFound,
    QuotaExceeded,
    RateLimited,
    TransientError,
)

if TYPE_CHECKING:
    from .client import GenerationOptions

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1"

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
BLOCKED_FINISH_REASONS = ("SAFETY", "RECITATION")

_RETRY_IN_RE = re.compile(r"retry in\s+(\d+(?:\.\d+)?)\s*s", re.IGNORECASE)


def parse_retry_after(headers: Optional[Dict[str, str]], message: str = "") -> Optional[float]:
    """Seconds to wait from a ``Retry-After`` header or a "retry in Ns" hint."""
    value = (headers or {}).get("Retry-After") or (headers or {}).get("retry-after")
    if value:
        try:
            return max(0.0, float(value))
        except ValueError:
            pass
    m = _RETRY_IN_RE.search(message or "")
    if m:
        return float(m.group(1))
    return None


def error_for_status(status: int, message: str, headers: Optional[Dict[str, str]] = None) -> ModelError:
    """Map an HTTP status and error message to a ``ModelError``."""
    text = f"Model API error ({status}): {message}"
    if status in (401, 403):
        return AuthError(text)
    if status == 404:
        return ModelNotFound(text)
    if status == 429:
        if "quota" in message.lower():
            return QuotaExceeded(text)
        return RateLimited(text, retry_after=parse_retry_after(headers, message))
    if status >= 500:
        return TransientError(text)
    return ModelError(text)


class GeminiBackend:
    """One Gemini model reached through the REST ``generateContent`` endpoint."""

    def __init__(
        self,
        model: str,
        base_url: str = DEFAULT_GEMINI_API_BASE,
        session: Optional[requests.Session] = None,
        timeout: float = 60.0,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    requires_api_key = True

    @property
    def name(self) -> str:
        return f"gemini:{self.model}"

    def build_request(self, prompt: str, options: "GenerationOptions") -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": options.temperature,
                "topK": options.top_k,
                "topP": options.top_p,
                "maxOutputTokens": options.max_output_tokens,
            },
            "safetySettings": [
                {"category": category, "threshold": options.safety_threshold}
                for category in HARM_CATEGORIES
            ],
        }

    def generate(self, prompt: str, api_key: Optional[str], options: "GenerationOptions") -> str:
        if not api_key:
            raise AuthError("Gemini API key is required")
        url = f"{self.base_url}/models/{self.model}:generateContent"
        try:
            resp = self.session.post(
                url,
                params={"key": api_key},
                json=self.build_request(prompt, options),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TransientError(f"Network error: {e}") from e

        if resp.status_code >= 400:
            raise error_for_status(resp.status_code, _error_message(resp), dict(resp.headers))

        try:
            data = resp.json()
        except ValueError as e:
            raise MalformedResponse("Response is not valid JSON") from e
        return _candidate_text(data)


def _error_message(resp: requests.Response) -> str:
    try:
        return resp.json().get("error", {}).get("message") or resp.reason or ""
    except (ValueError, AttributeError):
        return resp.reason or ""


def _candidate_text(data: Any) -> str:
    if not isinstance(data, dict):
        raise MalformedResponse("Response payload is not an object")
    candidates = data.get("candidates") or []
    if not candidates:
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        if block_reason:
            raise ContentBlocked(f"Prompt blocked ({block_reason})")
        raise MalformedResponse("No response generated")

    candidate = candidates[0]
    finish_reason = candidate.get("finishReason")
    if finish_reason in BLOCKED_FINISH_REASONS:
        raise ContentBlocked(f"Response blocked ({finish_reason})")

    parts = (candidate.get("content") or {}).get("parts") or []
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()
    if not text:
        raise MalformedResponse("Invalid response format")
    return text


class OpenAICompatibleBackend:
    """Chat-completions backend for OpenAI-compatible APIs (Z.AI/GLM, DeepSeek, etc.)."""

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: Optional[str] = None,
        client_factory: Callable[..., Any] = OpenAI,
    ):
        self.model = model
        self.base_url = base_url
        self.api_key = api_key
        self._client_factory = client_factory
        self._clients: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return f"openai:{self.model}"

    @property
    def requires_api_key(self) -> bool:
        return not self.api_key

    def _client(self, api_key: str) -> Any:
        if api_key not in self._clients:
            # retries are handled by ModelClient
            self._clients[api_key] = self._client_factory(
                base_url=self.base_url, api_key=api_key, max_retries=0
            )
        return self._clients[api_key]

    def generate(self, prompt: str, api_key: Optional[str], options: "GenerationOptions") -> str:
        key = self.api_key or api_key
        if not key:
            raise AuthError("API key required. Set LLM_API_KEY.")
        create_kw: dict = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": options.max_output_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
        }
        # Z.AI: disable thinking so the model returns directly in content
        if "z.ai" in self.base_url.lower():
            create_kw["extra_body"] = {"thinking": {"type": "disabled"}}

        try:
            response = self._client(key).chat.completions.create(**create_kw)
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            raise AuthError(str(e)) from e
        except openai.NotFoundError as e:
            raise ModelNotFound(str(e)) from e
        except openai.RateLimitError as e:
            headers = dict(e.response.headers) if getattr(e, "response", None) is not None else None
            raise error_for_status(429, str(e), headers) from e
        except (openai.InternalServerError, openai.APIConnectionError) as e:
            raise TransientError(str(e)) from e
        except openai.APIStatusError as e:
            raise error_for_status(e.status_code, str(e)) from e

        if not response.choices:
            raise MalformedResponse("Empty response from API")
        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "content_filter":
            raise ContentBlocked("Response blocked (content_filter)")
        msg = choice.message
        text = msg.content or ""
        # Z.AI may put output in reasoning_content when thinking is enabled
        if not text.strip() and getattr(msg, "reasoning_content", None):
            text = msg.reasoning_content or ""
        if not text.strip():
            logger.warning("Empty content in response (finish_reason=%s)", choice.finish_reason)
            raise MalformedResponse("Empty content in response")
        return text.strip()
