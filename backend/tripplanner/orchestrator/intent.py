"""
Keyword intent rules for follow-up chat messages. First matching rule wins.
"""
import re
from enum import Enum


class Intent(str, Enum):
    ADD_POI = "add_poi"
    REMOVE_POI = "remove_poi"
    ASK_QUESTION = "ask_question"
    MODIFY_ITINERARY = "modify_itinerary"


_RULES: list[tuple[re.Pattern, Intent]] = [
    (re.compile(r"\b(add|include|visit)\b"), Intent.ADD_POI),
    (re.compile(r"\b(remove|delete|skip)\b"), Intent.REMOVE_POI),
    (re.compile(r"\b(what|where|how|why|when)\b"), Intent.ASK_QUESTION),
]

_STOP_WORDS = frozenset({
    "add", "include", "visit", "remove", "delete", "skip",
    "to", "from", "my", "itinerary", "with", "replace", "the", "in", "please",
})

_REPLACE = re.compile(r"replace\s+(.+?)\s+with\s+(.+?)(?:\s+in\s+my\s+itinerary)?[.!]?$")

UNKNOWN_POI = "Unknown POI"


def classify_intent(message: str) -> Intent:
    text = (message or "").lower()
    for pattern, intent in _RULES:
        if pattern.search(text):
            return intent
    return Intent.MODIFY_ITINERARY


def extract_poi_name(message: str) -> str:
    """Message minus command/filler words, title-cased; UNKNOWN_POI when nothing is left."""
    words = [w.strip(".,!?") for w in (message or "").lower().split()]
    kept = [w for w in words if w and w not in _STOP_WORDS]
    if not kept:
        return UNKNOWN_POI
    return " ".join(w.capitalize() for w in kept)


def parse_replacement(message: str) -> tuple[str, str] | None:
    """'replace X with Y' -> (x, y), lower-cased; None when the message has no such clause."""
    m = _REPLACE.search((message or "").strip().lower())
    if not m:
        return None
    old, new = m.group(1).strip(), m.group(2).strip()
    if not old or not new:
        return None
    return old, new
