from __future__ import annotations

from typing import Callable

from campuscal.models import TEXT_FIELDS, FeedEvent


Normalizer = Callable[[str], str]

# Typical UTF-8-read-as-Latin-1 sequences for German umlauts and French accents.
_SUSPICIOUS_WEIGHTS = (
    (("Ã¤", "Ã¶", "Ã¼"), 10),
    (("Ã„", "Ã–", "Ãœ"), 10),
    (("ÃŸ",), 10),
    (("Ã©", "Ã¨", "Ã«"), 5),
)


def _suspicious_score(text: str) -> int:
    score = 0
    for needles, weight in _SUSPICIOUS_WEIGHTS:
        if any(needle in text for needle in needles):
            score += weight
    return score


def fix_mojibake(text: str) -> str:
    """Repair UTF-8 text that was decoded as Latin-1 upstream.

    Best effort: the repaired candidate is only used when it looks strictly
    less garbled than the input, so clean text comes back unchanged.
    """
    if not text:
        return text
    raw = bytes(ord(char) for char in text if ord(char) <= 0xFF)
    try:
        candidate = raw.decode("utf-8")
    except UnicodeDecodeError:
        return text
    if candidate != text and _suspicious_score(candidate) < _suspicious_score(text):
        return candidate
    return text


def normalize_event(event: FeedEvent, normalizer: Normalizer = fix_mojibake) -> FeedEvent:
    updates = {name: normalizer(getattr(event, name)) for name in TEXT_FIELDS}
    return event.with_updates(**updates)
