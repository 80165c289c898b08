"""External vector index backed by Supabase pgvector.

The table and its HNSW index are provisioned through SQL functions exposed
as RPCs, so the service key never needs DDL rights over PostgREST:

    create table if not exists document_chunks (
      id text primary key,
      text text not null,
      source text not null default '',
      token_count int not null default 0,
      vector vector(128) not null
    );

    create or replace function chunk_collection_exists(collection_name text)
    returns boolean language sql as $$
      select to_regclass(collection_name) is not null;
    $$;

    -- create_chunk_collection(collection_name text, dimension int) runs the
    -- "create table" above; create_chunk_index(collection_name text,
    -- metric text, m int, ef_construction int) runs
    -- "create index ... using hnsw (vector vector_cosine_ops) with (m, ef_construction)".

    create or replace function match_chunks(
      query_embedding vector(128),
      match_count int,
      ef_search int default 64
    )
    returns table (id text, text text, source text, token_count int, similarity float)
    language plpgsql as $$
    begin
      perform set_config('hnsw.ef_search', ef_search::text, true);
      return query
      select c.id, c.text, c.source, c.token_count,
             1 - (c.vector <=> query_embedding) as similarity
      from document_chunks c
      order by c.vector <=> query_embedding
      limit match_count;
    end;
    $$;
"""
import logging
from typing import List, Optional, Sequence
from supabase import create_client, Client, ClientOptions
from models.chunk import Chunk, ScoredResult
from services.embedding_model import EmbeddingModel
from services.errors import BackendUnavailableError
from config import SUPABASE_URL, SUPABASE_KEY, VECTOR_TABLE, VECTOR_TIMEOUT

logger = logging.getLogger(__name__)

HNSW_M = 16
HNSW_EF_CONSTRUCTION = 200
HNSW_EF_SEARCH = 64


class VectorStore:
    """Store chunk embeddings and enable cosine similarity search in pgvector."""

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = VECTOR_TABLE,
        timeout: float = VECTOR_TIMEOUT,
        batch_size: int = 500
    ):
        """
        Initialize the vector store with a Supabase client.

        The table itself is provisioned lazily by ``ensure_ready``.

        Args:
            embedding_model: EmbeddingModel used to embed chunk texts
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the table (collection) holding the chunks
            timeout: PostgREST request timeout in seconds
            batch_size: Maximum rows per upsert request

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")

        self.embedding_model = embedding_model
        self.table_name = table_name
        self.batch_size = batch_size
        self._ready = False

        self.client: Client = create_client(
            supabase_url,
            supabase_key,
            options=ClientOptions(postgrest_client_timeout=timeout)
        )

        logger.info(f"Initialized VectorStore with table: {table_name}")

    @property
    def is_ready(self) -> bool:
        return self._ready

    def ensure_ready(self) -> None:
        """
        Provision and load the collection if that has not happened yet.

        Raises:
            BackendUnavailableError: If any provisioning step fails
        """
        if self._ready:
            return

        if not self.has_collection():
            logger.info(f"Collection {self.table_name} missing, creating it")
            self.create_collection()
            self.create_index()
        self.load_collection()
        self._ready = True

    def has_collection(self) -> bool:
        try:
            response = self.client.rpc(
                "chunk_collection_exists", {"collection_name": self.table_name}
            ).execute()
            return bool(response.data)
        except Exception as e:
            raise self._failure("has_collection", e)

    def create_collection(self) -> None:
        try:
            self.client.rpc(
                "create_chunk_collection",
                {
                    "collection_name": self.table_name,
                    "dimension": self.embedding_model.dimension
                }
            ).execute()
        except Exception as e:
            raise self._failure("create_collection", e)

    def create_index(self) -> None:
        try:
            self.client.rpc(
                "create_chunk_index",
                {
                    "collection_name": self.table_name,
                    "metric": "cosine",
                    "m": HNSW_M,
                    "ef_construction": HNSW_EF_CONSTRUCTION
                }
            ).execute()
        except Exception as e:
            raise self._failure("create_index", e)

    def load_collection(self) -> None:
        """pgvector tables are always resident; verify the table answers."""
        try:
            self.client.table(self.table_name).select("id").limit(1).execute()
        except Exception as e:
            raise self._failure("load_collection", e)

    def insert_all(self, chunks: Sequence[Chunk]) -> None:
        """
        Embed and upsert chunks.

        Args:
            chunks: Chunks to store

        Raises:
            ValueError: If chunks list is empty
            BackendUnavailableError: If the database operation fails
        """
        if not chunks:
            raise ValueError("Chunks list cannot be empty")

        logger.info(f"Adding {len(chunks)} chunks to vector store...")

        try:
            embeddings = self.embedding_model.embed_batch([chunk.text for chunk in chunks])

            records = [
                {
                    "id": chunk.id,
                    "text": chunk.text,
                    "source": chunk.source or "",
                    "token_count": chunk.token_count,
                    "vector": embedding
                }
                for chunk, embedding in zip(chunks, embeddings)
            ]

            for start in range(0, len(records), self.batch_size):
                self.client.table(self.table_name).upsert(
                    records[start:start + self.batch_size]
                ).execute()

            logger.info(f"Successfully added {len(chunks)} chunks to vector store")

        except Exception as e:
            raise self._failure("insert", e)

    def similarity_search(self, query_embedding: List[float], top_k: int = 5) -> List[ScoredResult]:
        """
        Find the chunks most similar to the query vector.

        Args:
            query_embedding: Embedding vector for the query
            top_k: Number of chunks to retrieve

        Returns:
            Results in backend order with ``score`` clamped to [0, 1];
            ``relevance_percentage`` is filled in by the engine

        Raises:
            ValueError: If query_embedding is empty or top_k is invalid
            BackendUnavailableError: If the database operation fails
        """
        if not query_embedding:
            raise ValueError("Query embedding cannot be empty")

        if top_k <= 0:
            raise ValueError("top_k must be positive")

        try:
            response = self.client.rpc(
                "match_chunks",
                {
                    "query_embedding": query_embedding,
                    "match_count": top_k,
                    "ef_search": HNSW_EF_SEARCH
                }
            ).execute()

            results = [
                ScoredResult(
                    id=str(row["id"]),
                    text=row["text"],
                    source=row.get("source") or None,
                    token_count=row.get("token_count") or 0,
                    score=max(0.0, min(1.0, float(row["similarity"]))),
                    relevance_percentage=0
                )
                for row in response.data
            ]

            logger.debug(f"Found {len(results)} chunks for query vector")
            return results

        except Exception as e:
            raise self._failure("search", e)

    def clear(self) -> None:
        """
        Remove every chunk from the table.

        Raises:
            BackendUnavailableError: If the database operation fails
        """
        try:
            self.client.table(self.table_name).delete().neq("id", "").execute()
            logger.info("Cleared all chunks from vector store")
        except Exception as e:
            raise self._failure("clear", e)

    def count(self) -> int:
        """
        Get the total number of chunks in the table.

        Raises:
            BackendUnavailableError: If the database operation fails
        """
        try:
            response = self.client.table(self.table_name).select("id", count="exact").execute()
            return response.count if response.count is not None else 0
        except Exception as e:
            raise self._failure("count", e)

    def _failure(self, operation: str, error: Exception) -> BackendUnavailableError:
        logger.error(f"Vector store {operation} failed: {error}")
        # Re-run the provisioning checks on the next operation
        self._ready = False
        return BackendUnavailableError(operation, str(error))
