"""
Tests for reranking semantic hits.
"""

import pytest

from replygate.retrieval.models import RerankOptions, RerankWeights
from replygate.retrieval.rerank import (
    RankedCandidate,
    frequency_score,
    recency_score,
    rerank,
    rerank_and_select,
    select_top,
)

from conftest import START_TIME, candidate

DAY = 86400


def ranked(*scores):
    return [RankedCandidate(candidate=candidate(f"c{i}", s, "topics"), final_score=s) for i, s in enumerate(scores)]


class TestComponents:
    """Tests for the individual score components."""

    def test_recency(self):
        assert recency_score(None, START_TIME) == 0.5
        assert recency_score(START_TIME, START_TIME) == 1.0
        assert recency_score(START_TIME - 15 * DAY, START_TIME) == pytest.approx(0.5)
        assert recency_score(START_TIME - 45 * DAY, START_TIME) == 0.0

    def test_frequency(self):
        assert frequency_score(None) == 0.0
        assert frequency_score(0) == 0.0
        assert frequency_score(9) == pytest.approx(0.5)
        assert frequency_score(10_000) == 1.0


class TestRerank:
    """Tests for weighted scoring and ordering."""

    def test_recent_frequent_item_outranks_similarity(self):
        stale = candidate("Bob", 0.8, "people", last_mentioned=START_TIME - 40 * DAY)
        fresh = candidate("Carol", 0.7, "people", last_mentioned=START_TIME, times=9)

        result = rerank([stale, fresh], "people", START_TIME)

        assert [r.candidate.name for r in result] == ["Carol", "Bob"]
        assert result[0].final_score == pytest.approx(0.35 + 0.25 + 0.075 + 0.1)
        assert result[1].final_score == pytest.approx(0.4 + 0.1)
        assert result[0].recency == pytest.approx(0.25)

    def test_entity_priority_by_category(self):
        item = [candidate("x", 0.0, "topics")]
        assert rerank(item, "people", START_TIME)[0].entity == pytest.approx(0.1)
        assert rerank(item, "topics", START_TIME)[0].entity == pytest.approx(0.09)
        assert rerank(item, "events", START_TIME)[0].entity == pytest.approx(0.085)
        assert rerank(item, "places", START_TIME)[0].entity == pytest.approx(0.05)

    def test_custom_weights(self):
        options = RerankOptions(weights=RerankWeights(similarity=1.0, recency=0.0, frequency=0.0, entity=0.0))
        result = rerank([candidate("x", 0.42, "topics")], "topics", START_TIME, options)
        assert result[0].final_score == pytest.approx(0.42)


class TestSelectTop:
    """Tests for the selection cutoffs."""

    def test_stops_at_score_drop(self):
        selected = select_top(ranked(0.8, 0.7, 0.45, 0.44))
        assert [r.final_score for r in selected] == [0.8, 0.7]

    def test_stops_below_min_score(self):
        selected = select_top(ranked(0.6, 0.5, 0.39))
        assert [r.final_score for r in selected] == [0.6, 0.5]

    def test_max_results(self):
        selected = select_top(ranked(0.8, 0.79, 0.78), RerankOptions(max_results=2))
        assert len(selected) == 2

    def test_empty(self):
        assert select_top([]) == []


class TestRerankAndSelect:
    """Tests for the combined step."""

    def test_returns_candidates_in_rank_order(self):
        hits = [
            candidate("jazz", 0.75, "topics"),
            candidate("hiking", 0.72, "topics", last_mentioned=START_TIME, times=9),
        ]
        assert [c.name for c in rerank_and_select(hits, "topics", START_TIME)] == ["hiking", "jazz"]

    def test_disabled_passes_through(self):
        hits = [candidate("a", 0.1, "topics"), candidate("b", 0.9, "topics")]
        assert rerank_and_select(hits, "topics", START_TIME, RerankOptions(enabled=False)) == hits
