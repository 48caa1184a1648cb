"""Retrieval service that owns the cached vector index."""

from __future__ import annotations

import logging
import threading

from agentflow.config import RetrievalConfig
from agentflow.corpus.store import CorpusStore
from agentflow.ingest.chunker import CorpusChunker
from agentflow.retrieval.vector_store import TfidfVectorIndex
from agentflow.types import Chunk, ChunkType, ScoredChunk

logger = logging.getLogger(__name__)


class KnowledgeRetriever:
    """Serves searches from an index that is torn down on every corpus write.

    The index is an explicit cache. `invalidate()` drops it and bumps a
    generation counter; the next search rebuilds it from the current corpus
    text. A rebuild is build-then-swap: the new index is assembled outside the
    cache and only published if no invalidation happened while it was being
    built, so a stale index can never be cached over a newer mutation.
    """

    def __init__(
        self,
        store: CorpusStore,
        chunker: CorpusChunker | None = None,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.store = store
        self.chunker = chunker or CorpusChunker(store.config)
        self.config = config or RetrievalConfig()
        self._index: TfidfVectorIndex | None = None
        self._generation = 0
        self._lock = threading.Lock()
        self.rebuild_count = 0
        store.add_listener(self.invalidate)

    def invalidate(self) -> None:
        with self._lock:
            self._index = None
            self._generation += 1
        logger.debug("Vector index invalidated")

    def rebuild(self) -> TfidfVectorIndex:
        with self._lock:
            generation = self._generation

        # Corpus read failures propagate as CorpusUnavailableError.
        chunks = self.chunker.chunk(self.store.read())
        index = TfidfVectorIndex.build(chunks)

        with self._lock:
            self.rebuild_count += 1
            if generation == self._generation:
                self._index = index
        logger.info("Vector index built: %s", index.stats())
        return index

    def index(self) -> TfidfVectorIndex:
        with self._lock:
            current = self._index
        return current if current is not None else self.rebuild()

    def search(
        self,
        query: str,
        *,
        department: str | None = None,
        type: ChunkType | None = None,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[Chunk]:
        return [
            hit.chunk
            for hit in self.search_scored(
                query, department=department, type=type, limit=limit, threshold=threshold
            )
        ]

    def search_scored(
        self,
        query: str,
        *,
        department: str | None = None,
        type: ChunkType | None = None,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[ScoredChunk]:
        return self.index().search_scored(
            query,
            department=department,
            type=type,
            limit=limit if limit is not None else self.config.limit,
            threshold=threshold if threshold is not None else self.config.threshold,
        )

    def department_chunks(self, department: str) -> list[Chunk]:
        return self.chunker.department_chunks(self.store.read(), department)
