"""Word-overlap similarity used to match website FAQs against stored ones."""

from __future__ import annotations

SIMILAR_CONTENT_THRESHOLD = 0.8


def _words(text: str) -> set[str]:
    return {word for word in text.split() if len(word) > 2}


def calculate_similarity(first: str, second: str) -> float:
    """Return the share of significant words two texts have in common.

    Comparison is case-insensitive. Words of two characters or fewer are
    ignored and the overlap is divided by the larger word set.
    """

    a = first.lower().strip()
    b = second.lower().strip()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    words_a = _words(a)
    words_b = _words(b)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / max(len(words_a), len(words_b))


def is_similar_content(first: str, second: str) -> bool:
    return calculate_similarity(first, second) > SIMILAR_CONTENT_THRESHOLD


__all__ = ["SIMILAR_CONTENT_THRESHOLD", "calculate_similarity", "is_similar_content"]
