"""
Response parser: pull the JSON object out of free-text model output and decode it
into the schema for its kind.

The model is asked for bare JSON but nothing binds it to that, so the text may be
wrapped in prose and/or a fenced code block. Layers, in order:
  1. strip a leading/trailing ``` fence (with optional language tag)
  2. trim whitespace
  3. if not bounded by { ... }, slice from the first { to the last }
  4. strict-decode into the pydantic model for the kind
"""
import re

from pydantic import BaseModel, ValidationError

from tripplanner.core.constants import MALFORMED_SNIPPET_LENGTH
from tripplanner.core.errors import MalformedModelOutput
from tripplanner.schemas import PAYLOAD_TYPES, TaskKind

_LEADING_FENCE = re.compile(r"^```[A-Za-z0-9_-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")

# Every kind decodes from a JSON object
_OPEN, _CLOSE = "{", "}"


def _snippet(text: str) -> str:
    text = text or ""
    if len(text) > MALFORMED_SNIPPET_LENGTH:
        return text[:MALFORMED_SNIPPET_LENGTH] + "..."
    return text


def strip_fence(text: str) -> str:
    """Remove a fence at the very start and/or end of the text."""
    text = text.strip()
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text


def extract_json(raw_text: str) -> str:
    """Return the JSON object text embedded in raw model output (may still be invalid JSON)."""
    text = strip_fence(raw_text or "").strip()
    if text.startswith(_OPEN) and text.endswith(_CLOSE):
        return text
    first = text.find(_OPEN)
    last = text.rfind(_CLOSE)
    if first == -1 or last <= first:
        return text
    return text[first : last + 1].strip()


def parse(kind: TaskKind, raw_text: str) -> BaseModel:
    """
    Decode raw model output for `kind`. Raises MalformedModelOutput with a truncated
    snippet of the raw text on any failure.
    """
    model = PAYLOAD_TYPES[kind]
    if not raw_text or not raw_text.strip():
        raise MalformedModelOutput(kind.value, "", "empty output")
    candidate = extract_json(raw_text)
    try:
        return model.model_validate_json(candidate)
    except ValidationError as e:
        reason = "; ".join(err.get("msg", "") for err in e.errors()[:3])
        raise MalformedModelOutput(kind.value, _snippet(raw_text), reason) from e
