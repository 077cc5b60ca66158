"""
LLM client module: Gemini and OpenAI-compatible backends with retry and fallback.
"""

from .backends import GeminiBackend, OpenAICompatibleBackend
from .client import (
    GEMINI_API_KEY,
    GenerationOptions,
    ModelClient,
    RequestContext,
    RetryPolicy,
    create_client,
    strip_markup,
)
from .errors import (
    AuthError,
    ContentBlocked,
    MalformedResponse,
    ModelError,
    ModelNotFound,
    QuotaExceeded,
    RateLimited,
    RequestCancelled,
    TransientError,
    describe_error,
)

__all__ = [
    "GeminiBackend",
    "OpenAICompatibleBackend",
    "GEMINI_API_KEY",
    "GenerationOptions",
    "ModelClient",
    "RequestContext",
    "RetryPolicy",
    "create_client",
    "strip_markup",
    "AuthError",
    "ContentBlocked",
    "MalformedResponse",
    "ModelError",
    "ModelNotFound",
    "QuotaExceeded",
    "RateLimited",
    "RequestCancelled",
    "TransientError",
    "describe_error",
]
