"""
Hybrid context retrieval.

Tries semantic search first and reranks its hits; when fewer than the
fallback threshold survive across all categories, keyword search runs
and its results are merged after the semantic ones. A satisfied
threshold means the keyword provider is never called. Errors never
escape: they produce an empty context with method "error".
"""

import asyncio
import time
from typing import Callable

from loguru import logger

from replygate.errors import RetrievalFailure
from replygate.retrieval.models import (
    CATEGORIES,
    ContactContext,
    RetrievalConfig,
    RetrievalResult,
    ScoredCandidate,
)
from replygate.retrieval.providers import KeywordSearchProvider, SemanticSearchProvider
from replygate.retrieval.rerank import rerank_and_select


class HybridRetriever:
    """Chooses between semantic and keyword retrieval per message."""

    def __init__(
        self,
        semantic: SemanticSearchProvider | None = None,
        keyword: KeywordSearchProvider | None = None,
        default_config: RetrievalConfig | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.semantic = semantic
        self.keyword = keyword
        self.default_config = default_config or RetrievalConfig()
        self._clock = clock or time.time

    async def retrieve_context(
        self,
        query: str,
        contact_id: str,
        config: RetrievalConfig | None = None,
    ) -> RetrievalResult:
        """
        Retrieve people, topics and events relevant to a message.

        Args:
            query: Message text.
            contact_id: Contact the message came from.
            config: Limits, scores and fallback threshold.

        Returns:
            RetrievalResult; never raises.
        """
        config = config or self.default_config
        start = self._clock()
        stats: dict[str, int] = {}

        try:
            semantic: dict[str, list[ScoredCandidate]] = {c: [] for c in CATEGORIES}

            if config.enabled and self.semantic is not None and await self.semantic.is_available():
                semantic = await self._semantic_search(query, contact_id, config)
                total = sum(len(items) for items in semantic.values())
                stats.update({f"{c}_candidates": len(semantic[c]) for c in CATEGORIES})
                stats["semantic_total"] = total

                if total >= config.fallback_threshold:
                    logger.debug(f"Semantic retrieval for {contact_id}: {total} items")
                    return RetrievalResult(
                        context=ContactContext.from_candidates(semantic),
                        method="semantic",
                        latency_ms=(self._clock() - start) * 1000,
                        stats=stats,
                    )

                logger.debug(
                    f"Only {total} semantic items for {contact_id} "
                    f"(threshold {config.fallback_threshold}), using keyword search"
                )

            keyword = await self._keyword_search(query, contact_id, config)
            stats.update({f"keyword_{c}": len(keyword[c]) for c in CATEGORIES})
            merged = self._merge(semantic, keyword, config)

            return RetrievalResult(
                context=ContactContext.from_candidates(merged),
                method="keyword",
                latency_ms=(self._clock() - start) * 1000,
                stats=stats,
            )

        except Exception as e:
            logger.warning(f"Retrieval failed for {contact_id}: {e}")
            return RetrievalResult(
                context=ContactContext(),
                method="error",
                latency_ms=(self._clock() - start) * 1000,
                stats=stats,
            )

    async def _semantic_search(
        self, query: str, contact_id: str, config: RetrievalConfig
    ) -> dict[str, list[ScoredCandidate]]:
        try:
            results = await asyncio.gather(*(
                self.semantic.search(
                    query,
                    contact_id,
                    category,
                    top_k=config.top_k.get(category),
                    min_score=config.min_score.get(category),
                )
                for category in CATEGORIES
            ))
        except Exception as e:
            raise RetrievalFailure(f"semantic search failed: {e}") from e

        filtered = {}
        for category, candidates in zip(CATEGORIES, results):
            minimum = config.min_score.get(category)
            kept = [c for c in candidates if c.score >= minimum]
            kept.sort(key=lambda c: c.score, reverse=True)
            kept = kept[:config.top_k.get(category)]
            filtered[category] = rerank_and_select(kept, category, self._clock(), config.rerank)
        return filtered

    async def _keyword_search(
        self, query: str, contact_id: str, config: RetrievalConfig
    ) -> dict[str, list[ScoredCandidate]]:
        if self.keyword is None:
            return {c: [] for c in CATEGORIES}

        # Keyword hits carry no comparable similarity score
        try:
            results = await asyncio.gather(*(
                self.keyword.search(
                    query,
                    contact_id,
                    category,
                    top_k=config.top_k.get(category),
                    min_score=0.0,
                )
                for category in CATEGORIES
            ))
        except Exception as e:
            raise RetrievalFailure(f"keyword search failed: {e}") from e
        return dict(zip(CATEGORIES, results))

    @staticmethod
    def _merge(
        semantic: dict[str, list[ScoredCandidate]],
        keyword: dict[str, list[ScoredCandidate]],
        config: RetrievalConfig,
    ) -> dict[str, list[ScoredCandidate]]:
        """Semantic items first, then unseen keyword items, capped per category."""
        merged = {}
        for category in CATEGORIES:
            seen = set()
            items = []
            for candidate in semantic.get(category, []) + keyword.get(category, []):
                if candidate.name in seen:
                    continue
                seen.add(candidate.name)
                items.append(candidate)
            merged[category] = items[:config.top_k.get(category)]
        return merged
