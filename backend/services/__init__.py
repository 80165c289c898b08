"""Services for the Page Search retrieval engine."""
from .tokenizer import Tokenizer
from .chunking_engine import ChunkingEngine
from .embedding_model import EmbeddingModel
from .memory_store import InMemoryStore
from .vector_store import VectorStore
from .ranker import Ranker
from .retrieval_engine import RetrievalEngine
from .errors import RetrievalError, InputError, BackendUnavailableError, IndexStateError

__all__ = ['Tokenizer', 'ChunkingEngine', 'EmbeddingModel', 'InMemoryStore', 'VectorStore', 'Ranker', 'RetrievalEngine', 'RetrievalError', 'InputError', 'BackendUnavailableError', 'IndexStateError']
