"""Term normalization shared by indexing and querying."""

from __future__ import annotations

import re

_NON_WORD = re.compile(r"[^\w\s]", flags=re.UNICODE)

STOP_WORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
        "has", "he", "in", "is", "it", "its", "of", "on", "that", "the",
        "to", "was", "will", "with", "this", "but", "they", "have",
    }
)


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation, and drop short tokens and stopwords."""

    cleaned = _NON_WORD.sub(" ", text.lower())
    return [
        token
        for token in cleaned.split()
        if len(token) > 2 and token not in STOP_WORDS
    ]
