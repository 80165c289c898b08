"""Unit tests for Ranker."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import math

import pytest
from unittest.mock import patch
from models.chunk import Chunk, ScoredResult
from models.corpus import Corpus
from services.ranker import Ranker, round_half_up
from services.tokenizer import Tokenizer

tokenizer = Tokenizer()


def make_corpus(*texts):
    chunks = [Chunk.build(text, tokenizer.tokenize, position=i) for i, text in enumerate(texts)]
    return Corpus.from_chunks(chunks, version=1)


def rank(query, corpus, limit=10, ranker=None):
    ranker = ranker or Ranker()
    return ranker.rank(query, tokenizer.tokenize(query), corpus, limit)


class TestRoundHalfUp:

    @pytest.mark.parametrize("value, expected", [(0.5, 1), (2.5, 3), (14.5, 15), (14.49, 14), (99.5, 100)])
    def test_rounds_halves_up(self, value, expected):
        assert round_half_up(value) == expected


class TestBM25PlusScores:
    """Test suite for the lexical scoring strategy."""

    def test_raw_score_formula(self):
        """Test BM25+ with the phrase and position boosts on a two-chunk corpus."""
        corpus = make_corpus("apple banana", "cherry date elder fig")

        candidates = Ranker().bm25_plus_scores("banana", ["banana"], corpus)

        # N=2, df=1, docLen=2, avgDocLen=3
        idf = math.log(1 + (2 - 1 + 0.5) / (1 + 0.5))
        tf_component = (2.5 * 1) / (1.5 * (1 - 0.75 + 0.75 * (2 / 3)) + 1)
        position_boost = 1 + (1 - 1 / 3) * 0.3
        expected = idf * (tf_component + 1.0) * 1.5 * position_boost

        assert len(candidates) == 1
        chunk, score = candidates[0]
        assert chunk.id == "0"
        assert score == pytest.approx(expected)

    def test_chunks_without_matches_are_dropped(self):
        corpus = make_corpus("The quick brown fox", "Lazy dogs sleep all day")

        candidates = Ranker().bm25_plus_scores("quick fox", ["quick", "fox"], corpus)

        assert [chunk.id for chunk, _ in candidates] == ["0"]

    def test_exact_phrase_boost(self):
        corpus = make_corpus("fox brown cat", "brown fox cat")

        results = rank("brown fox", corpus)

        assert [r.id for r in results] == ["1", "0"]
        assert [r.relevance_percentage for r in results] == [100, 67]

    def test_phrase_boost_ignores_case(self):
        """Test the phrase check lower-cases while token matching does not."""
        corpus = make_corpus("The fox runs", "A fox runs")

        scores = dict(
            (chunk.id, score)
            for chunk, score in Ranker().bm25_plus_scores("the fox", ["the", "fox"], corpus)
        )

        assert scores["0"] / scores["1"] == pytest.approx(1.5)

    def test_early_match_position_boost(self):
        corpus = make_corpus("x y z target", "target x y z")

        results = rank("target", corpus)

        assert [r.id for r in results] == ["1", "0"]
        # (1 + 0.4 * 0.3) / (1 + 1.0 * 0.3) = 0.8615...
        assert results[1].relevance_percentage == 86

    def test_token_matching_is_case_sensitive(self):
        corpus = make_corpus("quick brown fox")

        assert Ranker().bm25_plus_scores("Quick", ["Quick"], corpus) == []
        assert rank("Quick", corpus) == []


class TestFuzzyScores:
    """Test suite for the fuzzy fallback strategy."""

    def test_weighted_overlap_and_jaccard(self):
        corpus = make_corpus("a c d")

        candidates = Ranker().fuzzy_scores(["a", "b", "c"], corpus)

        # weights a=3 b=2 c=1, overlap 4/6; jaccard |{a,c}|/|{a,b,c,d}| = 0.5
        assert len(candidates) == 1
        assert candidates[0][1] == pytest.approx(0.7 * 4 / 6 + 0.3 * 0.5)

    def test_no_overlap_is_dropped(self):
        corpus = make_corpus("x y z")
        assert Ranker().fuzzy_scores(["a", "b"], corpus) == []

    def test_rank_falls_back_to_fuzzy_when_lexical_is_empty(self):
        """Test Strategy B output goes through the same normalization."""
        corpus = make_corpus("a c d", "a", "q r s")
        ranker = Ranker()

        with patch.object(ranker, "bm25_plus_scores", return_value=[]) as bm25:
            results = ranker.rank("a b c", ["a", "b", "c"], corpus, 10)

        bm25.assert_called_once()
        # raw: chunk0 0.6167, chunk1 0.7*3/6 + 0.3*1/3 = 0.45, chunk2 dropped
        assert [r.id for r in results] == ["0", "1"]
        assert results[0].relevance_percentage == 100
        assert results[1].relevance_percentage == round_half_up(0.45 / (0.7 * 4 / 6 + 0.15) * 100)

    def test_fuzzy_not_used_when_lexical_matches(self):
        corpus = make_corpus("a c d")
        ranker = Ranker()

        with patch.object(ranker, "fuzzy_scores") as fuzzy:
            ranker.rank("a", ["a"], corpus, 10)

        fuzzy.assert_not_called()


class TestNormalize:
    """Test suite for percentage normalization."""

    def make_candidates(self, scores):
        return [
            (Chunk(id=str(i), text=f"chunk {i}", token_count=2, source="src"), score)
            for i, score in enumerate(scores)
        ]

    def test_floor_sort_and_ties(self):
        results = Ranker().normalize(self.make_candidates([10, 5, 1, 1.4, 10, 0, -3]), limit=10)

        assert [r.id for r in results] == ["0", "4", "1"]
        assert [r.relevance_percentage for r in results] == [100, 100, 50]
        assert [r.score for r in results] == [1.0, 1.0, 0.5]
        assert all(isinstance(r, ScoredResult) for r in results)
        assert results[0].source == "src"
        assert results[0].token_count == 2

    def test_limit_truncates(self):
        results = Ranker().normalize(self.make_candidates([4, 3, 2, 1]), limit=2)
        assert [r.id for r in results] == ["0", "1"]

    def test_keep_raw_score(self):
        results = Ranker().normalize(self.make_candidates([0.8, 0.4]), limit=5, keep_raw_score=True)

        assert [r.score for r in results] == [0.8, 0.4]
        assert [r.relevance_percentage for r in results] == [100, 50]

    def test_empty_and_non_positive(self):
        assert Ranker().normalize([], limit=5) == []
        assert Ranker().normalize(self.make_candidates([0, -1]), limit=5) == []
        assert Ranker().normalize(self.make_candidates([1]), limit=0) == []

    def test_custom_floor(self):
        results = Ranker(relevance_floor=60).normalize(self.make_candidates([10, 5]), limit=5)
        assert [r.id for r in results] == ["0"]


class TestRank:
    """Test suite for the ranking entry point."""

    def test_quick_fox_scenario(self):
        corpus = make_corpus("The quick brown fox", "Lazy dogs sleep all day")

        results = rank("quick fox", corpus)

        assert len(results) == 1
        assert results[0].id == "0"
        assert results[0].relevance_percentage == 100
        assert results[0].score == 1.0

    def test_empty_inputs(self):
        corpus = make_corpus("some text")

        assert Ranker().rank("", [], corpus, 10) == []
        assert rank("text", Corpus()) == []
        assert rank("text", corpus, limit=0) == []

    def test_results_are_sorted_floored_and_limited(self):
        corpus = make_corpus(
            "search engines rank pages by relevance",
            "the engine indexes chunks of pages",
            "ranking uses term frequency and document frequency",
            "pages pages pages everywhere",
            "nothing relevant here at all",
            "chunks are ranked and pages are returned",
        )

        results = rank("pages ranked chunks", corpus, limit=3)

        assert len(results) <= 3
        percentages = [r.relevance_percentage for r in results]
        assert percentages == sorted(percentages, reverse=True)
        assert all(15 <= p <= 100 for p in percentages)
        assert all(0.0 <= r.score <= 1.0 for r in results)
        assert results[0].id == "5"
