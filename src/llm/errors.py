"""
Model client error types and their user-facing descriptions.
"""

from __future__ import annotations

from typing import Optional


class ModelError(Exception):
    """Base class for failures talking to a hosted model."""

    retryable = False


class AuthError(ModelError):
    """Missing or rejected API key (401/403)."""


class QuotaExceeded(ModelError):
    """Quota for this model is used up; another model may still work."""


class RateLimited(ModelError):
    """Too many requests (429); retried after a delay."""

    retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class TransientError(ModelError):
    """Server-side (5xx) or network failure; retried after a delay."""

    retryable = True


class ModelNotFound(ModelError):
    """The model name is not served (404); the next backend is tried."""


class ContentBlocked(ModelError):
    """The response was withheld for safety or recitation reasons."""


class MalformedResponse(ModelError):
    """Empty or unparseable response payload."""


class RequestCancelled(ModelError):
    """The request was superseded before it completed."""


_MESSAGES = {
    AuthError: "Invalid API key or insufficient permissions. Please check your API key.",
    QuotaExceeded: "The model quota has been exceeded. Please try again later.",
    RateLimited: "Rate limit exceeded. Please try again in a moment.",
    TransientError: "The model service is temporarily unavailable. Please try again later.",
    ModelNotFound: "No available model could answer this request.",
    ContentBlocked: "The response was blocked by the model's safety filters. Please rephrase your question.",
    MalformedResponse: "The model returned an unexpected response. Please try again.",
    RequestCancelled: "The request was cancelled.",
}


def describe_error(exc: BaseException) -> str:
    """Short message suitable for showing to a student."""
    for cls, message in _MESSAGES.items():
        if isinstance(exc, cls):
            return message
    if isinstance(exc, ModelError):
        return f"Failed to get a response from the model: {exc}"
    return f"Something went wrong: {exc}"
