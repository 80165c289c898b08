"""Corpus snapshot model."""
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Tuple

from models.chunk import Chunk


@dataclass(frozen=True, eq=False)
class Corpus:
    """
    Immutable snapshot of the indexed chunks plus their ranking statistics.

    A new snapshot is built for every index call and swapped in whole, so a
    reader holding a reference always sees one consistent corpus.

    Attributes:
        chunks: Chunks in insertion order (the ranking tie-break order)
        term_frequencies: Per-chunk token counts, aligned with ``chunks``
        token_sets: Per-chunk distinct tokens, aligned with ``chunks``
        document_frequencies: Number of chunks containing each token
        avg_doc_length: Mean ``token_count`` over the corpus
        version: Snapshot counter, 0 for the initial empty corpus
        indexed: False until an index call has populated the store, and again
            after the store is cleared
    """
    chunks: Tuple[Chunk, ...] = ()
    term_frequencies: Tuple[Counter, ...] = field(default=(), repr=False)
    token_sets: Tuple[FrozenSet[str], ...] = field(default=(), repr=False)
    document_frequencies: Dict[str, int] = field(default_factory=dict, repr=False)
    avg_doc_length: float = 0.0
    version: int = 0
    indexed: bool = False

    @classmethod
    def from_chunks(cls, chunks: Iterable[Chunk], version: int) -> "Corpus":
        chunks = tuple(chunks)
        term_frequencies = tuple(Counter(chunk.tokens) for chunk in chunks)
        token_sets = tuple(frozenset(tf) for tf in term_frequencies)

        document_frequencies: Counter = Counter()
        for token_set in token_sets:
            document_frequencies.update(token_set)

        avg_doc_length = (
            sum(chunk.token_count for chunk in chunks) / len(chunks) if chunks else 0.0
        )
        return cls(
            chunks=chunks,
            term_frequencies=term_frequencies,
            token_sets=token_sets,
            document_frequencies=dict(document_frequencies),
            avg_doc_length=avg_doc_length,
            version=version,
            indexed=True,
        )

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def is_empty(self) -> bool:
        return not self.chunks
