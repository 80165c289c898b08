"""Retrieval engine orchestrating chunk indexing and query ranking."""
import logging
import threading
from typing import Any, Dict, Iterable, List, Mapping, Optional

from models.chunk import Chunk, ScoredResult
from models.corpus import Corpus
from models.outcome import RetrievalOutcome, VECTOR_BACKEND
from services.embedding_model import EmbeddingModel
from services.errors import InputError, IndexStateError
from services.memory_store import InMemoryStore
from services.ranker import Ranker
from services.tokenizer import Tokenizer
from services.vector_store import VectorStore
from config import DEFAULT_SEARCH_LIMIT, USE_VECTOR_SEARCH
from logger import log_event

logger = logging.getLogger(__name__)


class RetrievalEngine:
    """
    Index page chunks and rank them against free-text queries.

    The in-process corpus is always populated and is the source of truth.
    When a VectorStore is attached, index calls mirror the corpus into it and
    search calls query it first; any failure there degrades that single
    operation to the in-process ranker.
    """

    def __init__(
        self,
        tokenizer: Optional[Tokenizer] = None,
        ranker: Optional[Ranker] = None,
        embedding_model: Optional[EmbeddingModel] = None,
        vector_store: Optional[VectorStore] = None,
        memory_store: Optional[InMemoryStore] = None,
        default_limit: int = DEFAULT_SEARCH_LIMIT
    ):
        """
        Initialize the retrieval engine.

        Args:
            tokenizer: Tokenizer shared by indexing and query parsing
            ranker: Lexical ranker for the in-process path
            embedding_model: Embedding model for the vector path
            vector_store: Optional external vector backend
            memory_store: In-process corpus holder
            default_limit: Result limit used when search is called without one
        """
        self.tokenizer = tokenizer or Tokenizer()
        self.ranker = ranker or Ranker()
        self.embedding_model = embedding_model or EmbeddingModel(self.tokenizer)
        self.memory_store = memory_store or InMemoryStore(self.embedding_model)
        self.vector_store = vector_store
        self.default_limit = default_limit
        # Corpus version currently mirrored in the vector store
        self._vector_version: Optional[int] = None
        # Serializes the corpus swap, the vector mirror and the version update
        self._index_lock = threading.Lock()
        logger.info(
            f"Initialized RetrievalEngine (vector search: {'on' if vector_store else 'off'})"
        )

    @classmethod
    def from_config(cls) -> "RetrievalEngine":
        """
        Build an engine from environment configuration.

        A VectorStore that cannot be constructed (missing credentials, client
        errors) leaves the engine on the in-process path for its lifetime.
        """
        tokenizer = Tokenizer()
        embedding_model = EmbeddingModel(tokenizer)
        vector_store = None

        if USE_VECTOR_SEARCH:
            try:
                vector_store = VectorStore(embedding_model)
            except Exception as e:
                log_event(
                    logger, logging.WARNING,
                    f"Vector search disabled, could not initialize VectorStore: {e}",
                    event="vector_disabled", operation="configure", reason=str(e)
                )

        return cls(tokenizer=tokenizer, embedding_model=embedding_model, vector_store=vector_store)

    @property
    def uses_vector_search(self) -> bool:
        return self.vector_store is not None

    @property
    def corpus(self) -> Corpus:
        return self.memory_store.snapshot()

    def index(self, records: Iterable[Any]) -> bool:
        """
        Replace the indexed corpus. Never raises for backend failures.

        Args:
            records: Chunk objects or mappings with ``text`` and optional
                ``id``, ``source``, ``tokenCount``/``token_count``, ``tokens``

        Returns:
            True
        """
        self.index_with_status(records)
        return True

    def index_with_status(self, records: Iterable[Any]) -> RetrievalOutcome:
        """
        Replace the indexed corpus and report whether the vector mirror worked.

        Args:
            records: Same as ``index``

        Returns:
            RetrievalOutcome with empty results; ``degraded`` is set when the
            vector store could not be updated
        """
        chunks = self._build_chunks(records)

        # Overlapping index calls would otherwise interleave their clear and
        # insert steps and leave rows of both corpora in the vector store
        with self._index_lock:
            corpus = self.memory_store.insert_all(chunks)
            log_event(
                logger, logging.INFO,
                f"Indexed {len(corpus)} chunks (corpus v{corpus.version})",
                event="corpus_indexed", operation="index",
                corpus_version=corpus.version, chunk_count=len(corpus)
            )

            if self.vector_store is None:
                return RetrievalOutcome.ok([])

            # Searches skip the vector store until the mirror below completes
            self._vector_version = None
            try:
                self.vector_store.ensure_ready()
                self.vector_store.clear()
                if chunks:
                    self.vector_store.insert_all(chunks)
            except Exception as e:
                self._log_fallback("index", e)
                return RetrievalOutcome.degraded_to_memory([], str(e))

            self._vector_version = corpus.version
            return RetrievalOutcome.ok([], backend=VECTOR_BACKEND)

    def search(self, query: str, limit: Optional[int] = None) -> List[ScoredResult]:
        """
        Rank indexed chunks for a query.

        Args:
            query: Free-text query
            limit: Maximum number of results (default: 10)

        Returns:
            Results sorted by descending relevance percentage; empty for an
            empty query or before anything was indexed
        """
        return self.search_with_status(query, limit).results

    def search_with_status(self, query: str, limit: Optional[int] = None) -> RetrievalOutcome:
        """
        Rank indexed chunks for a query and report which path served it.

        Args:
            query: Free-text query
            limit: Maximum number of results (default: 10)

        Returns:
            RetrievalOutcome; ``degraded`` is set when the vector path was
            configured but the in-process ranker answered instead
        """
        if limit is None:
            limit = self.default_limit

        try:
            query_tokens = self._parse_query(query)
            corpus = self._require_corpus()
        except InputError as e:
            logger.debug(f"Returning no results: {e}")
            return RetrievalOutcome.empty(str(e))
        except IndexStateError as e:
            logger.info(f"Returning no results: {e}")
            return RetrievalOutcome.empty(str(e))

        if limit < 1:
            return RetrievalOutcome.empty("limit must be positive")

        if self.vector_store is not None:
            if self._vector_version != corpus.version:
                reason = "vector store does not hold the current corpus"
                logger.debug(f"Skipping vector search: {reason}")
                return RetrievalOutcome.degraded_to_memory(
                    self.ranker.rank(query, query_tokens, corpus, limit), reason
                )
            try:
                return RetrievalOutcome.ok(self._vector_search(query, limit), backend=VECTOR_BACKEND)
            except Exception as e:
                self._log_fallback("search", e)
                return RetrievalOutcome.degraded_to_memory(
                    self.ranker.rank(query, query_tokens, corpus, limit), str(e)
                )

        results = self.ranker.rank(query, query_tokens, corpus, limit)
        logger.debug(f"Ranked {len(results)} chunks for query: {query[:100]}")
        return RetrievalOutcome.ok(results)

    def _vector_search(self, query: str, limit: int) -> List[ScoredResult]:
        query_vector = self.embedding_model.embed_text(query)
        # Over-fetch so the relevance floor still leaves up to `limit` results
        hits = self.vector_store.similarity_search(query_vector, top_k=limit * 2)
        results = self.ranker.normalize([(hit, hit.score) for hit in hits], limit, keep_raw_score=True)
        logger.debug(f"Vector search returned {len(hits)} hits, kept {len(results)}")
        return results

    def _parse_query(self, query: str) -> List[str]:
        if not query or not isinstance(query, str) or not query.strip():
            raise InputError("empty query")
        query_tokens = self.tokenizer.tokenize(query)
        if not query_tokens:
            raise InputError("query has no searchable tokens")
        return query_tokens

    def _require_corpus(self) -> Corpus:
        corpus = self.memory_store.snapshot()
        if not corpus.indexed:
            raise IndexStateError("search called before any index call")
        return corpus

    def _build_chunks(self, records: Iterable[Any]) -> List[Chunk]:
        chunks: Dict[str, Chunk] = {}
        for position, record in enumerate(records or []):
            try:
                chunk = self._to_chunk(record, position)
            except InputError as e:
                logger.warning(f"Skipping record {position}: {e}")
                continue

            if chunk.id in chunks:
                logger.warning(f"Duplicate chunk id {chunk.id!r}, keeping the later record")
            chunks[chunk.id] = chunk
        return list(chunks.values())

    def _to_chunk(self, record: Any, position: int) -> Chunk:
        if isinstance(record, Chunk):
            if record.tokens or not record.text:
                return record
            # Chunk built without cached tokens; keep its id and count
            return Chunk.build(
                record.text,
                self.tokenizer.tokenize,
                chunk_id=record.id,
                position=position,
                source=record.source,
                token_count=record.token_count
            )

        if not isinstance(record, Mapping):
            raise InputError(f"unsupported record type {type(record).__name__}")

        text = record.get("text")
        if not isinstance(text, str):
            raise InputError("record has no text")

        token_count = record.get("tokenCount", record.get("token_count"))
        return Chunk.build(
            text,
            self.tokenizer.tokenize,
            chunk_id=record.get("id"),
            position=position,
            source=record.get("source"),
            token_count=token_count,
            tokens=record.get("tokens")
        )

    def _log_fallback(self, operation: str, error: Exception) -> None:
        log_event(
            logger, logging.WARNING,
            f"Vector {operation} failed, using in-memory corpus: {error}",
            event="vector_fallback", operation=operation, reason=str(error)
        )
