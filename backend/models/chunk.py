"""Chunk data models."""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Chunk:
    """A bounded unit of page text with its cached tokenization."""
    id: str
    text: str
    token_count: int
    tokens: Tuple[str, ...] = field(default=(), repr=False)
    source: Optional[str] = None

    @classmethod
    def build(
        cls,
        text: str,
        tokenize: Callable[[str], List[str]],
        chunk_id: Optional[str] = None,
        position: int = 0,
        source: Optional[str] = None,
        token_count: Optional[int] = None,
        tokens: Optional[Sequence[str]] = None,
    ) -> "Chunk":
        """
        Construct a chunk with every derived field present.

        Supplied ``tokens`` and ``token_count`` are reused as-is; missing ones
        are computed from ``text``. A missing or empty id falls back to the
        chunk's position in its input sequence.

        Args:
            text: Chunk text
            tokenize: Tokenizer function used for missing derived fields
            chunk_id: Explicit identifier
            position: Zero-based position, used for the default id
            source: Optional source identifier (usually the page URL)
            token_count: Precomputed token count
            tokens: Precomputed token sequence

        Returns:
            Immutable Chunk
        """
        if tokens is None:
            tokens = tokenize(text)
        if token_count is None:
            token_count = len(tokens)
        return cls(
            id=str(chunk_id) if chunk_id not in (None, "") else str(position),
            text=text,
            token_count=int(token_count),
            tokens=tuple(tokens),
            source=source,
        )

    def to_record(self) -> Dict[str, Any]:
        """Wire form used by the index input and the external backend."""
        return {
            "id": self.id,
            "text": self.text,
            "source": self.source,
            "tokenCount": self.token_count,
        }


@dataclass
class ScoredResult:
    """Chunk with relevance score from retrieval."""
    id: str
    text: str
    source: Optional[str]
    token_count: int
    score: float  # 0.0 to 1.0
    relevance_percentage: int  # 0 to 100, relative to the best hit for the query

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "source": self.source,
            "tokenCount": self.token_count,
            "score": self.score,
            "relevancePercentage": self.relevance_percentage,
        }
