"""
Tests for Retriever

Tests two-phase search ranking and context building.
"""

import pytest
from datetime import timedelta
from unittest.mock import patch

from insightops.common.errors import InputError
from insightops.retriever.context_builder import ContextBuilder, format_context
from insightops.retriever.searcher import RetrievalMatch, Searcher
from insightops.tests.helpers import NOW, FakeEmbedding, make_document


@pytest.fixture
def populated_store(store):
    store.save_document(make_document("a", content="A" * 400, embedding=[1.0, 0.0, 0.0]))
    store.save_document(make_document("b", content="Bravo content", embedding=[0.6, 0.8, 0.0]))
    store.save_document(make_document("c", content="Charlie content", embedding=[0.6, 0.8, 0.0]))
    store.save_document(make_document("d", content="No vector yet", embedding=None))
    store.save_document(make_document("e", content="Unrelated", embedding=[0.0, 0.0, 1.0]))
    store.save_document(make_document("f", content="Wrong size", embedding=[1.0, 0.0]))
    store.save_document(make_document("other", workspace_id="ws2", content="Elsewhere", embedding=[1.0, 0.0, 0.0]))
    return store


class TestSearcher:
    @pytest.mark.asyncio
    async def test_ranked_descending_with_stable_ties(self, populated_store):
        searcher = Searcher(populated_store, FakeEmbedding())

        results = await searcher.search("remote work", "ws1", topk=5)

        assert [r.document_id for r in results] == ["a", "b", "c"]
        assert results[0].similarity == pytest.approx(1.0)
        assert results[1].similarity == results[2].similarity

    @pytest.mark.asyncio
    async def test_excludes_low_similarity_missing_and_mismatched_embeddings(self, populated_store):
        searcher = Searcher(populated_store, FakeEmbedding())

        results = await searcher.search("remote work", "ws1", topk=10)

        ids = {r.document_id for r in results}
        assert ids.isdisjoint({"d", "e", "f", "other"})
        assert all(r.similarity > 0.1 for r in results)

    @pytest.mark.asyncio
    async def test_topk_truncates(self, populated_store):
        searcher = Searcher(populated_store, FakeEmbedding())
        results = await searcher.search("remote work", "ws1", topk=2)
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_excerpt_is_first_300_chars(self, populated_store):
        searcher = Searcher(populated_store, FakeEmbedding())
        results = await searcher.search("remote work", "ws1", topk=1)
        assert results[0].excerpt == "A" * 300 + "..."

    @pytest.mark.asyncio
    async def test_content_fetched_only_for_winners(self, populated_store):
        searcher = Searcher(populated_store, FakeEmbedding())

        with patch.object(populated_store, "get_contents", wraps=populated_store.get_contents) as spy:
            await searcher.search("remote work", "ws1", topk=2)

        spy.assert_called_once()
        assert list(spy.call_args[0][0]) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_empty_workspace(self, store):
        searcher = Searcher(store, FakeEmbedding())
        assert await searcher.search("anything", "empty", topk=5) == []

    @pytest.mark.asyncio
    async def test_empty_query_skips_embedding(self, populated_store):
        embedding = FakeEmbedding()
        searcher = Searcher(populated_store, embedding)

        assert await searcher.search("   ", "ws1") == []
        assert embedding.calls == 0

    @pytest.mark.asyncio
    async def test_missing_workspace_raises(self, populated_store):
        searcher = Searcher(populated_store, FakeEmbedding())
        with pytest.raises(InputError):
            await searcher.search("remote work", "")


class TestContextBuilder:
    @pytest.mark.asyncio
    async def test_builds_blocks_and_sources(self, populated_store):
        builder = ContextBuilder(Searcher(populated_store, FakeEmbedding()))

        built = await builder.build_context("remote work", "ws1")

        assert built.context.startswith("[Source 1: A]\n")
        assert "[Source 2: B]\nBravo content..." in built.context
        assert [s.document_id for s in built.sources] == ["a", "b", "c"]
        assert built.sources[1].similarity == 0.6

    @pytest.mark.asyncio
    async def test_no_matches_is_empty_not_error(self, store):
        builder = ContextBuilder(Searcher(store, FakeEmbedding()))

        built = await builder.build_context("remote work", "ws1")

        assert built.is_empty
        assert built.context == ""
        assert built.sources == []

    def test_whole_context_truncated_to_budget(self):
        matches = [
            RetrievalMatch(
                document_id=f"d{i}", title=f"Doc {i}", type="policy",
                similarity=0.9, updated_at=NOW - timedelta(days=i), excerpt="x" * 2500,
            )
            for i in range(5)
        ]
        context = format_context(matches, char_budget=6000)
        assert len(context) == 6000
        assert "[Source 3: Doc 2]" in context
        assert "[Source 4: Doc 3]" not in context
