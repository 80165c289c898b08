"""In-process index store holding the current corpus snapshot."""
import logging
import threading
from typing import List, Optional, Sequence, Tuple

import numpy as np

from models.chunk import Chunk, ScoredResult
from models.corpus import Corpus
from services.embedding_model import EmbeddingModel

logger = logging.getLogger(__name__)


class InMemoryStore:
    """
    Corpus holder used as the default and fallback backend.

    Writers build a fresh Corpus and swap the reference under a lock;
    readers call ``snapshot()`` once and keep working on that value.
    """

    def __init__(self, embedding_model: Optional[EmbeddingModel] = None):
        self.embedding_model = embedding_model or EmbeddingModel()
        self._corpus = Corpus()
        self._write_lock = threading.Lock()
        # (corpus version, chunk embedding matrix) for similarity_search
        self._vectors: Optional[Tuple[int, np.ndarray]] = None

    def ensure_ready(self) -> None:
        """Always ready; present for parity with the external backend."""

    def snapshot(self) -> Corpus:
        return self._corpus

    def insert_all(self, chunks: Sequence[Chunk]) -> Corpus:
        """
        Replace the corpus with ``chunks``.

        Args:
            chunks: Chunks with unique ids, in tie-break order

        Returns:
            The snapshot that was swapped in
        """
        with self._write_lock:
            corpus = Corpus.from_chunks(chunks, version=self._corpus.version + 1)
            self._corpus = corpus
        logger.info(f"Swapped in corpus v{corpus.version} with {len(corpus)} chunks")
        return corpus

    def clear(self) -> None:
        """Drop all chunks; searches report the store as not indexed until the next insert."""
        with self._write_lock:
            self._corpus = Corpus(version=self._corpus.version + 1)
        logger.info(f"Cleared corpus (v{self._corpus.version})")

    def count(self) -> int:
        return len(self._corpus)

    def similarity_search(self, query_embedding: List[float], top_k: int = 5) -> List[ScoredResult]:
        """
        Brute-force cosine search over the current snapshot.

        Not on the engine's search path, which ranks lexically in-process; it
        lets callers query either backend through the same interface. Chunk
        embeddings are computed once per corpus version.

        Args:
            query_embedding: Query vector from the embedding model
            top_k: Number of results to return

        Returns:
            Results ordered by descending similarity, ``score`` clamped to [0, 1]

        Raises:
            ValueError: If query_embedding is empty or top_k is invalid
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")
        if top_k <= 0:
            raise ValueError("top_k must be positive")

        corpus = self.snapshot()
        if corpus.is_empty:
            return []

        matrix = self._corpus_vectors(corpus)
        query = np.asarray(query_embedding, dtype=np.float64)
        query_norm = np.linalg.norm(query)
        if query_norm == 0:
            return []

        norms = np.linalg.norm(matrix, axis=1) * query_norm
        similarities = np.divide(matrix @ query, norms, out=np.zeros(len(norms)), where=norms > 0)

        # Stable sort keeps corpus order among equal similarities
        order = np.argsort(-similarities, kind="stable")[:top_k]
        results = []
        for i in order:
            chunk = corpus.chunks[i]
            results.append(ScoredResult(
                id=chunk.id,
                text=chunk.text,
                source=chunk.source,
                token_count=chunk.token_count,
                score=max(0.0, min(1.0, float(similarities[i]))),
                relevance_percentage=0,
            ))
        return results

    def _corpus_vectors(self, corpus: Corpus) -> np.ndarray:
        cached = self._vectors
        if cached is not None and cached[0] == corpus.version:
            return cached[1]
        matrix = np.array(self.embedding_model.embed_batch([c.text for c in corpus.chunks]))
        self._vectors = (corpus.version, matrix)
        return matrix
