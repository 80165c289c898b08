"""Unit tests for InMemoryStore and Corpus snapshots."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import math

import pytest
from unittest.mock import patch
from models.chunk import Chunk
from models.corpus import Corpus
from services.embedding_model import EmbeddingModel
from services.memory_store import InMemoryStore
from services.tokenizer import Tokenizer

tokenizer = Tokenizer()


def make_chunks(*texts):
    return [Chunk.build(text, tokenizer.tokenize, position=i) for i, text in enumerate(texts)]


class TestCorpus:
    """Test suite for Corpus statistics."""

    def test_statistics(self):
        corpus = Corpus.from_chunks(make_chunks("a b a", "b c", "d"), version=3)

        assert len(corpus) == 3
        assert corpus.version == 3
        assert corpus.document_frequencies == {"a": 1, "b": 2, "c": 1, "d": 1}
        assert corpus.term_frequencies[0]["a"] == 2
        assert corpus.token_sets[1] == frozenset({"b", "c"})
        assert corpus.avg_doc_length == pytest.approx(2.0)

    def test_empty(self):
        corpus = Corpus()

        assert corpus.is_empty
        assert corpus.avg_doc_length == 0.0
        assert corpus.indexed is False
        assert Corpus.from_chunks([], version=1).is_empty


class TestInMemoryStore:
    """Test suite for InMemoryStore."""

    @pytest.fixture
    def store(self):
        return InMemoryStore(EmbeddingModel(tokenizer))

    def test_starts_empty(self, store):
        store.ensure_ready()
        assert store.count() == 0
        assert store.snapshot().version == 0

    def test_insert_all_swaps_snapshot(self, store):
        """Test a held snapshot is unaffected by a later insert."""
        first = store.insert_all(make_chunks("one", "two"))
        held = store.snapshot()

        second = store.insert_all(make_chunks("three"))

        assert held is first
        assert [c.text for c in held.chunks] == ["one", "two"]
        assert store.snapshot() is second
        assert second.version == first.version + 1
        assert store.count() == 1

    def test_clear(self, store):
        """Test a cleared store reads as never indexed."""
        store.insert_all(make_chunks("one"))
        assert store.snapshot().indexed is True

        store.clear()

        assert store.count() == 0
        assert store.snapshot().version == 2
        assert store.snapshot().indexed is False
        assert store.insert_all(make_chunks("two")).indexed is True

    def test_similarity_search_embeds_corpus_once(self, store):
        store.insert_all(make_chunks("a", "b"))
        query = EmbeddingModel().embed_text("a")

        with patch.object(store.embedding_model, "embed_batch", wraps=store.embedding_model.embed_batch) as embed_batch:
            store.similarity_search(query, top_k=1)
            store.similarity_search(query, top_k=2)
            assert embed_batch.call_count == 1

            store.insert_all(make_chunks("c"))
            assert [r.id for r in store.similarity_search(query, top_k=1)] == ["0"]
            assert embed_batch.call_count == 2

    def test_similarity_search(self, store):
        store.insert_all(make_chunks("a", "b", "a b"))

        results = store.similarity_search(EmbeddingModel().embed_text("a"), top_k=2)

        assert [r.id for r in results] == ["0", "2"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(1 / math.sqrt(2))

    def test_similarity_search_edge_cases(self, store):
        assert store.similarity_search([1.0], top_k=1) == []

        store.insert_all(make_chunks("a"))
        assert store.similarity_search([0.0] * 128, top_k=1) == []

        with pytest.raises(ValueError, match="Query embedding cannot be empty"):
            store.similarity_search([], top_k=1)
        with pytest.raises(ValueError, match="top_k must be positive"):
            store.similarity_search([1.0], top_k=0)
