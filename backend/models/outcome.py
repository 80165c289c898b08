"""Retrieval outcome models."""
from dataclasses import dataclass, field
from typing import List, Optional

from models.chunk import ScoredResult

MEMORY_BACKEND = "memory"
VECTOR_BACKEND = "vector"


@dataclass
class RetrievalOutcome:
    """
    Result of an index or search operation.

    Attributes:
        results: Ranked results (always empty for index operations)
        degraded: True when the external backend failed and the in-process
            path served the operation instead
        reason: Why the operation degraded or came back empty
        backend: Which backend produced ``results``
    """
    results: List[ScoredResult] = field(default_factory=list)
    degraded: bool = False
    reason: Optional[str] = None
    backend: str = MEMORY_BACKEND

    @classmethod
    def ok(cls, results: List[ScoredResult], backend: str = MEMORY_BACKEND) -> "RetrievalOutcome":
        return cls(results=results, backend=backend)

    @classmethod
    def empty(cls, reason: str) -> "RetrievalOutcome":
        return cls(results=[], reason=reason)

    @classmethod
    def degraded_to_memory(cls, results: List[ScoredResult], reason: str) -> "RetrievalOutcome":
        return cls(results=results, degraded=True, reason=reason, backend=MEMORY_BACKEND)
