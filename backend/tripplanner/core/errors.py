"""
Error taxonomy for itinerary generation and the mapping to HTTP responses.
Constants and a reusable helper so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException


class ItineraryError(Exception):
    """Base class for errors raised by the generation pipeline and stores."""


class ModelCallFailed(ItineraryError):
    """The model backend could not be reached or returned an API error."""


class MalformedModelOutput(ItineraryError):
    """Model output could not be decoded into the schema for its kind."""

    def __init__(self, kind: str, snippet: str, reason: str = "") -> None:
        self.kind = kind
        self.snippet = snippet
        self.reason = reason
        super().__init__(f"malformed {kind} output: {reason} (snippet: {snippet!r})")


class PersistenceFailed(ItineraryError):
    """A store read or write failed."""


class IncompleteResult(ItineraryError):
    """All generation tasks reported but at least one failed. Causes are logged, not exposed."""

    def __init__(self, failed_kinds: list[str]) -> None:
        self.failed_kinds = list(failed_kinds)
        super().__init__(f"itinerary generation incomplete; failed tasks: {', '.join(self.failed_kinds)}")


class NotFound(ItineraryError):
    """Session or interaction lookup miss."""


class Cancelled(ItineraryError):
    """Cancellation fired while a run was in flight."""


# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_NOT_FOUND = 404
STATUS_INTERNAL_ERROR = 500
STATUS_BAD_GATEWAY = 502  # model replied but the reply was unusable
STATUS_SERVICE_UNAVAILABLE = 503  # quota, rate limit, provider down

MSG_GENERATION_FAILED = "Failed to generate itinerary. Please try again."
MSG_MODEL_UNAVAILABLE = "AI service unavailable. Please try again later."
MSG_MODEL_MALFORMED = "AI service returned an unusable response."
MSG_AI_QUOTA_EXCEEDED = "AI service quota exceeded. Check your provider plan and billing."
MSG_STORE_FAILED = "Storage error."


def _is_quota_error(msg: str) -> bool:
    lower = msg.lower()
    return (
        "429" in msg
        or "insufficient_quota" in lower
        or "quota" in lower
        or "rate limit" in lower
    )


# List of (predicate, status_code, detail). First match wins. detail=None echoes str(exc).
ERROR_RULES: list[tuple[Callable[[Exception], bool], int, str | None]] = [
    (lambda e: isinstance(e, NotFound), STATUS_NOT_FOUND, None),
    (lambda e: isinstance(e, IncompleteResult), STATUS_INTERNAL_ERROR, MSG_GENERATION_FAILED),
    (lambda e: isinstance(e, ModelCallFailed) and _is_quota_error(str(e)), STATUS_SERVICE_UNAVAILABLE, MSG_AI_QUOTA_EXCEEDED),
    (lambda e: isinstance(e, ModelCallFailed), STATUS_SERVICE_UNAVAILABLE, MSG_MODEL_UNAVAILABLE),
    (lambda e: isinstance(e, MalformedModelOutput), STATUS_BAD_GATEWAY, MSG_MODEL_MALFORMED),
    (lambda e: isinstance(e, PersistenceFailed), STATUS_INTERNAL_ERROR, MSG_STORE_FAILED),
]


def error_to_http(exc: Exception) -> HTTPException:
    """
    Map an exception from a generation or session call into an HTTPException.
    Uses ERROR_RULES for known error types; anything else is a 500 with a generic message
    so model-internal detail does not leak.
    """
    for predicate, status_code, detail in ERROR_RULES:
        if predicate(exc):
            return HTTPException(status_code=status_code, detail=detail if detail is not None else str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=MSG_GENERATION_FAILED)


def public_message(exc: Exception) -> str:
    """User-facing message for stream error events (same rules as HTTP, no status)."""
    return error_to_http(exc).detail
