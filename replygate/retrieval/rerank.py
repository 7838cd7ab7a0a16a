"""
Reranking of semantic search hits.

Scoring formula:
final = (similarity_weight * similarity) +
        (recency_weight * recency) +
        (frequency_weight * frequency) +
        (entity_weight * entity_priority)

Selection walks the ranked list and stops at max_results, at the first
score under min_score, or at the first drop larger than score_drop
relative to the previous kept item.
"""

import math
from dataclasses import dataclass

from loguru import logger

from replygate.retrieval.models import RerankOptions, ScoredCandidate

ENTITY_PRIORITY = {
    "people": 1.0,
    "topics": 0.9,
    "events": 0.85,
}

RECENCY_DAYS = 30


@dataclass
class RankedCandidate:
    candidate: ScoredCandidate
    final_score: float
    similarity: float = 0.0
    recency: float = 0.0
    frequency: float = 0.0
    entity: float = 0.0


def recency_score(last_mentioned: float | None, now: float) -> float:
    """1.0 for today, decaying linearly to 0 over RECENCY_DAYS; 0.5 when unknown."""
    if not last_mentioned:
        return 0.5
    days = (now - last_mentioned) / 86400
    return max(0.0, min(1.0, 1 - days / RECENCY_DAYS))


def frequency_score(times: int | None) -> float:
    if not times or times <= 0:
        return 0.0
    return max(0.0, min(1.0, math.log10(times + 1) / 2))


def rerank(
    candidates: list[ScoredCandidate],
    category: str,
    now: float,
    options: RerankOptions | None = None,
) -> list[RankedCandidate]:
    """Score candidates and sort them by final score, best first."""
    weights = (options or RerankOptions()).weights
    priority = ENTITY_PRIORITY.get(category, 0.5)

    ranked = []
    for candidate in candidates:
        attrs = candidate.attributes
        item = RankedCandidate(
            candidate=candidate,
            final_score=0.0,
            similarity=candidate.score * weights.similarity,
            recency=recency_score(attrs.get("last_mentioned"), now) * weights.recency,
            frequency=frequency_score(attrs.get("times")) * weights.frequency,
            entity=priority * weights.entity,
        )
        item.final_score = item.similarity + item.recency + item.frequency + item.entity
        ranked.append(item)

    ranked.sort(key=lambda r: r.final_score, reverse=True)
    return ranked


def select_top(
    ranked: list[RankedCandidate],
    options: RerankOptions | None = None,
) -> list[RankedCandidate]:
    options = options or RerankOptions()
    selected: list[RankedCandidate] = []

    for item in ranked:
        if len(selected) >= options.max_results:
            break
        if item.final_score < options.min_score:
            break
        if selected:
            previous = selected[-1].final_score
            drop = (previous - item.final_score) / previous if previous else 0.0
            if drop > options.score_drop:
                logger.debug(
                    f"Score drop cutoff at {item.candidate.name}: "
                    f"{item.final_score:.3f} is {drop:.0%} below previous"
                )
                break
        selected.append(item)

    return selected


def rerank_and_select(
    candidates: list[ScoredCandidate],
    category: str,
    now: float,
    options: RerankOptions | None = None,
) -> list[ScoredCandidate]:
    """Rerank, apply the cutoffs and return the surviving candidates in rank order."""
    options = options or RerankOptions()
    if not options.enabled:
        return list(candidates)
    return [r.candidate for r in select_top(rerank(candidates, category, now, options), options)]
