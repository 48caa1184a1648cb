"""TF-IDF weighting for lexical retrieval."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from math import log, sqrt

from agentflow.ingest.tokenizer import tokenize


class TfidfEmbedder:
    """Computes sparse TF-IDF vectors against a corpus-wide IDF table.

    The IDF table is fitted once over every chunk; queries are weighted with
    the same table, so terms that never occur in the corpus contribute
    nothing. Vectors are plain ``dict[str, float]`` maps.
    """

    def __init__(self) -> None:
        self.idf: dict[str, float] = {}

    def fit(self, token_lists: Sequence[list[str]]) -> None:
        total_docs = len(token_lists)
        doc_frequency: Counter[str] = Counter()
        for tokens in token_lists:
            doc_frequency.update(set(tokens))
        self.idf = {
            term: log(total_docs / frequency)
            for term, frequency in doc_frequency.items()
        }

    def embed_tokens(self, tokens: list[str]) -> dict[str, float]:
        return {
            term: tf * self.idf.get(term, 0.0)
            for term, tf in term_frequency(tokens).items()
        }

    def embed_query(self, text: str) -> dict[str, float]:
        return self.embed_tokens(tokenize(text))


def term_frequency(tokens: list[str]) -> dict[str, float]:
    if not tokens:
        return {}
    total = len(tokens)
    return {term: count / total for term, count in Counter(tokens).items()}


def magnitude(vector: dict[str, float]) -> float:
    return sqrt(sum(value * value for value in vector.values()))


def cosine_similarity(
    a: dict[str, float], magnitude_a: float, b: dict[str, float], magnitude_b: float
) -> float:
    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    if len(b) < len(a):
        a, b = b, a
    dot = sum(value * b.get(term, 0.0) for term, value in a.items())
    return dot / (magnitude_a * magnitude_b)
