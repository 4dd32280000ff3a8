"""
Keyword extraction and term-overlap scoring for the library search.

A score is the fraction of search terms found as substrings of an
entry's concatenated text fields, so it always lies in [0, 1].
"""

from __future__ import annotations

import re

MIN_MATCH_SCORE = 0.1

_SPLIT_RE = re.compile(r"[\s,.\-_/()]+")

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "of", "to", "in", "for", "on", "with",
        "at", "by", "from", "is", "are", "was", "were", "be", "been", "being",
        "has", "have", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "that", "which",
        "who", "whom", "this", "these", "those", "it", "its",
    }
)  # fmt: skip


def extract_keywords(*inputs: str | None) -> list[str]:
    """Lowercased, de-duplicated search terms longer than two characters."""
    seen: dict[str, None] = {}
    for text in inputs:
        if not text:
            continue
        for token in _SPLIT_RE.split(text.lower()):
            if len(token) > 2 and token not in STOP_WORDS:
                seen.setdefault(token, None)
    return list(seen)


def match_score(keywords: list[str], *fields: str | None) -> float:
    if not keywords:
        return 0.0
    text = " ".join(field for field in fields if field).lower()
    if not text:
        return 0.0
    hits = sum(1 for keyword in keywords if keyword in text)
    return hits / len(keywords)
