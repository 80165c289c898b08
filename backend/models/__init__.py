"""Data models for the Page Search retrieval engine."""
from .chunk import Chunk, ScoredResult
from .corpus import Corpus
from .outcome import RetrievalOutcome

__all__ = [
    "Chunk",
    "ScoredResult",
    "Corpus",
    "RetrievalOutcome",
]
