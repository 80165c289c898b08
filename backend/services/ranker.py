"""
Lexical relevance ranker.

Scores every chunk of a corpus snapshot against a query with BM25+ plus a
phrase boost and an early-match position boost. When no chunk shares a
token with the query, a fuzzy overlap score is used instead. Raw scores are
then normalized against the best candidate into a 0-100 relevance
percentage and filtered by a relevance floor.
"""
import logging
import math
from typing import Any, FrozenSet, List, Sequence, Set, Tuple

from models.chunk import ScoredResult
from models.corpus import Corpus
from config import (
    BM25_K1,
    BM25_B,
    BM25_DELTA,
    PHRASE_BOOST,
    POSITION_WEIGHT,
    RELEVANCE_FLOOR,
)

logger = logging.getLogger(__name__)

# (record with id/text/source/token_count, raw score)
Candidate = Tuple[Any, float]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class Ranker:
    """BM25+ ranker with phrase/position boosts and a fuzzy fallback."""

    FUZZY_WEIGHTED_SHARE = 0.7
    FUZZY_JACCARD_SHARE = 0.3

    def __init__(
        self,
        k1: float = BM25_K1,
        b: float = BM25_B,
        delta: float = BM25_DELTA,
        phrase_boost: float = PHRASE_BOOST,
        position_weight: float = POSITION_WEIGHT,
        relevance_floor: int = RELEVANCE_FLOOR
    ):
        self.k1 = k1
        self.b = b
        self.delta = delta
        self.phrase_boost = phrase_boost
        self.position_weight = position_weight
        self.relevance_floor = relevance_floor

    def rank(
        self,
        query: str,
        query_tokens: Sequence[str],
        corpus: Corpus,
        limit: int
    ) -> List[ScoredResult]:
        """
        Rank corpus chunks for a query.

        Args:
            query: Raw query text, used for the phrase boost
            query_tokens: Tokenized query
            corpus: Corpus snapshot to rank
            limit: Maximum number of results

        Returns:
            Results sorted by descending relevance percentage, ties in corpus
            order, all at or above the relevance floor
        """
        if not query_tokens or corpus.is_empty or limit < 1:
            return []

        candidates = self.bm25_plus_scores(query, query_tokens, corpus)
        if not candidates:
            logger.debug("No lexical matches, falling back to fuzzy overlap scoring")
            candidates = self.fuzzy_scores(query_tokens, corpus)

        return self.normalize(candidates, limit)

    def bm25_plus_scores(
        self,
        query: str,
        query_tokens: Sequence[str],
        corpus: Corpus
    ) -> List[Candidate]:
        """
        Score chunks with BM25+ and apply the multiplicative boosts.

        Every query token position contributes, so a repeated query token
        counts again. Chunks without a positive score are dropped.
        """
        n = len(corpus)
        avg_doc_length = corpus.avg_doc_length
        query_set = set(query_tokens)
        lowered_query = query.lower()

        candidates: List[Candidate] = []
        for chunk, term_frequencies in zip(corpus.chunks, corpus.term_frequencies):
            if avg_doc_length > 0:
                length_norm = 1 - self.b + self.b * (chunk.token_count / avg_doc_length)
            else:
                length_norm = 1.0

            score = 0.0
            for token in query_tokens:
                tf = term_frequencies.get(token, 0)
                if tf <= 0:
                    continue
                df = corpus.document_frequencies.get(token, 0)
                idf = math.log(1 + (n - df + 0.5) / (df + 0.5))
                tf_component = ((self.k1 + 1) * tf) / (self.k1 * length_norm + tf)
                score += idf * (tf_component + self.delta)

            if score <= 0:
                continue

            if lowered_query in chunk.text.lower():
                score *= self.phrase_boost

            first_match = self._first_match_position(chunk.tokens, query_set)
            if first_match >= 0:
                position_factor = 1 - first_match / (chunk.token_count + 1)
                score *= 1 + position_factor * self.position_weight

            if score > 0:
                candidates.append((chunk, score))

        return candidates

    def fuzzy_scores(self, query_tokens: Sequence[str], corpus: Corpus) -> List[Candidate]:
        """Score chunks by position-weighted token overlap blended with Jaccard."""
        query_set = set(query_tokens)
        query_length = len(query_tokens)
        total_weight = query_length * (query_length + 1) / 2

        candidates: List[Candidate] = []
        for chunk, token_set in zip(corpus.chunks, corpus.token_sets):
            score = self._fuzzy_score(query_tokens, query_set, token_set, total_weight)
            if score > 0:
                candidates.append((chunk, score))
        return candidates

    def _fuzzy_score(
        self,
        query_tokens: Sequence[str],
        query_set: Set[str],
        token_set: FrozenSet[str],
        total_weight: float
    ) -> float:
        union = query_set | token_set
        jaccard = len(query_set & token_set) / len(union) if union else 0.0

        # Earlier query tokens weigh more
        query_length = len(query_tokens)
        overlap = sum(
            query_length - position
            for position, token in enumerate(query_tokens)
            if token in token_set
        )
        weighted = overlap / total_weight if total_weight > 0 else 0.0

        return self.FUZZY_WEIGHTED_SHARE * weighted + self.FUZZY_JACCARD_SHARE * jaccard

    def normalize(
        self,
        candidates: Sequence[Candidate],
        limit: int,
        keep_raw_score: bool = False
    ) -> List[ScoredResult]:
        """
        Convert raw scores into relevance percentages.

        Args:
            candidates: (record, raw score) pairs in tie-break order
            limit: Maximum number of results
            keep_raw_score: Report the raw score (already in [0, 1]) as
                ``score`` instead of ``percentage / 100``

        Returns:
            Results at or above the floor, sorted by descending percentage
        """
        candidates = [(record, raw) for record, raw in candidates if raw > 0]
        if not candidates or limit < 1:
            return []

        max_score = max(raw for _, raw in candidates)

        results = []
        for record, raw in candidates:
            percentage = min(100, round_half_up(raw / max_score * 100))
            if percentage < self.relevance_floor:
                continue
            results.append(ScoredResult(
                id=record.id,
                text=record.text,
                source=record.source,
                token_count=record.token_count,
                score=raw if keep_raw_score else percentage / 100,
                relevance_percentage=percentage
            ))

        # sorted() is stable, so equal percentages keep candidate order
        results = sorted(results, key=lambda result: result.relevance_percentage, reverse=True)
        return results[:limit]

    @staticmethod
    def _first_match_position(chunk_tokens: Sequence[str], query_set: Set[str]) -> int:
        for position, token in enumerate(chunk_tokens):
            if token in query_set:
                return position
        return -1
