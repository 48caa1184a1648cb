"""In-memory TF-IDF vector index over corpus chunks."""

from __future__ import annotations

from dataclasses import dataclass

from agentflow.ingest.embedder import TfidfEmbedder, cosine_similarity, magnitude
from agentflow.ingest.tokenizer import tokenize
from agentflow.types import Chunk, ChunkType, ScoredChunk


@dataclass(frozen=True, slots=True)
class VectorDocument:
    chunk: Chunk
    term_weights: dict[str, float]
    magnitude: float


class TfidfVectorIndex:
    """Immutable index; any corpus change requires building a new one."""

    def __init__(self, documents: list[VectorDocument], embedder: TfidfEmbedder) -> None:
        self._documents = documents
        self._embedder = embedder

    @classmethod
    def build(cls, chunks: list[Chunk]) -> "TfidfVectorIndex":
        token_lists = [tokenize(chunk.content) for chunk in chunks]
        embedder = TfidfEmbedder()
        embedder.fit(token_lists)

        documents: list[VectorDocument] = []
        for chunk, tokens in zip(chunks, token_lists, strict=True):
            weights = embedder.embed_tokens(tokens)
            documents.append(
                VectorDocument(chunk=chunk, term_weights=weights, magnitude=magnitude(weights))
            )
        return cls(documents, embedder)

    def __len__(self) -> int:
        return len(self._documents)

    def search(
        self,
        query: str,
        *,
        department: str | None = None,
        type: ChunkType | None = None,
        limit: int = 5,
        threshold: float = 0.1,
    ) -> list[Chunk]:
        hits = self.search_scored(
            query, department=department, type=type, limit=limit, threshold=threshold
        )
        return [hit.chunk for hit in hits]

    def search_scored(
        self,
        query: str,
        *,
        department: str | None = None,
        type: ChunkType | None = None,
        limit: int = 5,
        threshold: float = 0.1,
    ) -> list[ScoredChunk]:
        candidates = [
            doc for doc in self._documents if _metadata_match(doc.chunk, department, type)
        ]

        query_vector = self._embedder.embed_query(query)
        query_magnitude = magnitude(query_vector)

        scored = [
            ScoredChunk(
                chunk=doc.chunk,
                score=cosine_similarity(
                    query_vector, query_magnitude, doc.term_weights, doc.magnitude
                ),
            )
            for doc in candidates
        ]
        # sorted() is stable, so equal scores keep corpus order.
        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        return [
            ScoredChunk(chunk=item.chunk, score=item.score, rank=i + 1)
            for i, item in enumerate(
                [item for item in ranked if item.score >= threshold][:limit]
            )
        ]

    def stats(self) -> dict[str, float | int]:
        total = len(self._documents)
        return {
            "total_documents": total,
            "vocabulary_size": len(self._embedder.idf),
            "average_vector_size": (
                sum(len(doc.term_weights) for doc in self._documents) / total if total else 0.0
            ),
        }


def _metadata_match(chunk: Chunk, department: str | None, type: ChunkType | None) -> bool:
    if department:
        if chunk.department is None or department.lower() not in chunk.department.lower():
            return False
    if type and chunk.type != type:
        return False
    return True
