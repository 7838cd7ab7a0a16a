"""
Tests for semantic-first retrieval with keyword fallback.
"""

import pytest

from replygate.retrieval.hybrid import HybridRetriever
from replygate.retrieval.models import CategoryLimits, ContactContext, RerankOptions, RetrievalConfig

from conftest import START_TIME, FakeKeywordSearch, FakeSemanticSearch, candidate


def semantic_hits(count):
    topics = [candidate(f"topic-{i}", 0.9 - i * 0.01, "topics") for i in range(count)]
    return {"topics": topics}


class TestSemanticPath:
    """Tests for when semantic search is enough."""

    @pytest.mark.asyncio
    async def test_threshold_met_skips_keyword(self):
        semantic = FakeSemanticSearch(semantic_hits(4))
        keyword = FakeKeywordSearch({"topics": [candidate("unused", 0, "topics")]})
        retriever = HybridRetriever(semantic, keyword)

        result = await retriever.retrieve_context("how was the trip", "alice", RetrievalConfig(fallback_threshold=3))

        assert result.method == "semantic"
        assert result.context.total == 4
        assert keyword.calls == []
        assert result.stats["semantic_total"] == 4

    @pytest.mark.asyncio
    async def test_filters_sorts_and_truncates(self):
        semantic = FakeSemanticSearch({
            "people": [
                candidate("Bob", 0.7, "people", occupation="chef"),
                candidate("Carol", 0.5, "people"),
                candidate("Dave", 0.95, "people"),
                candidate("Erin", 0.8, "people"),
            ],
        })
        config = RetrievalConfig(top_k=CategoryLimits(people=2), fallback_threshold=1)
        retriever = HybridRetriever(semantic, FakeKeywordSearch())

        result = await retriever.retrieve_context("dinner plans", "alice", config)

        assert result.method == "semantic"
        assert [p.name for p in result.context.people] == ["Dave", "Erin"]

    @pytest.mark.asyncio
    async def test_requests_carry_category_limits(self):
        semantic = FakeSemanticSearch(semantic_hits(5))
        retriever = HybridRetriever(semantic)

        await retriever.retrieve_context("q", "alice")

        assert sorted(semantic.calls) == [
            ("events", 5, 0.7),
            ("people", 10, 0.65),
            ("topics", 10, 0.7),
        ]


class TestReranking:
    """Tests for reranking before the threshold is applied."""

    def stale_hits(self):
        return {"topics": [
            candidate("fresh", 0.95, "topics"),
            *(candidate(f"stale-{i}", 0.7, "topics", last_mentioned=START_TIME - 60 * 86400) for i in range(3)),
        ]}

    @pytest.mark.asyncio
    async def test_score_drop_counts_against_threshold(self, clock):
        keyword = FakeKeywordSearch({"people": [candidate("Bob", 0, "people")]})
        retriever = HybridRetriever(FakeSemanticSearch(self.stale_hits()), keyword, clock=clock)

        result = await retriever.retrieve_context("q", "alice")

        assert result.stats["semantic_total"] == 1
        assert result.method == "keyword"
        assert [t.name for t in result.context.topics] == ["fresh"]
        assert result.context.people[0].name == "Bob"

    @pytest.mark.asyncio
    async def test_rerank_disabled_keeps_every_hit(self, clock):
        keyword = FakeKeywordSearch()
        retriever = HybridRetriever(FakeSemanticSearch(self.stale_hits()), keyword, clock=clock)

        result = await retriever.retrieve_context("q", "alice", RetrievalConfig(rerank=RerankOptions(enabled=False)))

        assert result.method == "semantic"
        assert result.context.total == 4
        assert keyword.calls == []

    @pytest.mark.asyncio
    async def test_recency_reorders_hits(self, clock):
        semantic = FakeSemanticSearch({"topics": [
            candidate("jazz", 0.75, "topics"),
            candidate("hiking", 0.72, "topics", last_mentioned=START_TIME, times=9),
        ]})
        retriever = HybridRetriever(semantic, clock=clock)

        result = await retriever.retrieve_context("q", "alice", RetrievalConfig(fallback_threshold=2))

        assert [t.name for t in result.context.topics] == ["hiking", "jazz"]


class TestKeywordFallback:
    """Tests for falling back to keyword search."""

    @pytest.mark.asyncio
    async def test_below_threshold_uses_keyword(self):
        semantic = FakeSemanticSearch(semantic_hits(1))
        keyword = FakeKeywordSearch({
            "topics": [candidate("topic-0", 0, "topics"), candidate("hiking", 0, "topics", times=3)],
            "events": [candidate("Birthday", 0, "events", date="2024-02-01")],
        })
        retriever = HybridRetriever(semantic, keyword)

        result = await retriever.retrieve_context("weekend?", "alice")

        assert result.method == "keyword"
        assert [t.name for t in result.context.topics] == ["topic-0", "hiking"]
        assert result.context.topics[1].times == 3
        assert result.context.events[0].date == "2024-02-01"

    @pytest.mark.asyncio
    async def test_keyword_ignores_min_score(self):
        keyword = FakeKeywordSearch()
        retriever = HybridRetriever(FakeSemanticSearch(), keyword)

        await retriever.retrieve_context("q", "alice")

        assert all(min_score == 0.0 for _, _, min_score in keyword.calls)

    @pytest.mark.asyncio
    async def test_merge_caps_per_category(self):
        semantic = FakeSemanticSearch({"events": [candidate("A", 0.9, "events")]})
        keyword = FakeKeywordSearch({"events": [candidate(n, 0, "events") for n in "BCDEF"]})
        config = RetrievalConfig(top_k=CategoryLimits(events=3))
        retriever = HybridRetriever(semantic, keyword)

        result = await retriever.retrieve_context("q", "alice", config)

        assert [e.name for e in result.context.events] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_semantic_disabled(self):
        semantic = FakeSemanticSearch(semantic_hits(10))
        keyword = FakeKeywordSearch({"people": [candidate("Bob", 0, "people")]})
        retriever = HybridRetriever(semantic, keyword)

        result = await retriever.retrieve_context("q", "alice", RetrievalConfig(enabled=False))

        assert result.method == "keyword"
        assert semantic.calls == []
        assert result.context.people[0].name == "Bob"

    @pytest.mark.asyncio
    async def test_semantic_unavailable(self):
        class Offline(FakeSemanticSearch):
            async def is_available(self):
                return False

        semantic = Offline(semantic_hits(10))
        retriever = HybridRetriever(semantic, FakeKeywordSearch())

        result = await retriever.retrieve_context("q", "alice")

        assert result.method == "keyword"
        assert semantic.calls == []

    @pytest.mark.asyncio
    async def test_no_providers(self):
        result = await HybridRetriever().retrieve_context("q", "alice")
        assert result.method == "keyword"
        assert result.context.is_empty()


class TestErrors:
    """Tests for error containment."""

    @pytest.mark.asyncio
    async def test_semantic_error(self):
        retriever = HybridRetriever(FakeSemanticSearch(error=RuntimeError("index gone")), FakeKeywordSearch())

        result = await retriever.retrieve_context("q", "alice")

        assert result.method == "error"
        assert result.context.is_empty()

    @pytest.mark.asyncio
    async def test_keyword_error(self):
        retriever = HybridRetriever(FakeSemanticSearch(), FakeKeywordSearch(error=ConnectionError("down")))

        result = await retriever.retrieve_context("q", "alice")

        assert result.method == "error"


class TestContactContext:
    """Tests for the retrieved context container."""

    def test_from_candidates_maps_attributes(self):
        context = ContactContext.from_candidates({
            "people": [candidate("Bob", 0.9, "people", occupation="chef", company="Luigi's")],
        })
        assert context.people[0].company == "Luigi's"
        assert context.to_dict()["people"][0]["occupation"] == "chef"

    def test_unknown_category(self):
        with pytest.raises(ValueError):
            ContactContext.from_candidates({"people": [candidate("Bob", 0.9, "places")]})
