"""
Hybrid context retrieval.

Provides:
- RetrievalConfig and result types
- Search provider interfaces (semantic, keyword)
- Reranking of semantic hits
- HybridRetriever with count-based fallback
"""

from replygate.retrieval.hybrid import HybridRetriever
from replygate.retrieval.models import (
    CATEGORIES,
    CategoryLimits,
    CategoryScores,
    ContactContext,
    EventContext,
    PersonContext,
    RerankOptions,
    RerankWeights,
    RetrievalConfig,
    RetrievalResult,
    ScoredCandidate,
    TopicContext,
)
from replygate.retrieval.providers import (
    KeywordSearchProvider,
    SearchProvider,
    SemanticSearchProvider,
)
from replygate.retrieval.rerank import RankedCandidate, rerank, rerank_and_select, select_top

__all__ = [
    "CATEGORIES",
    "CategoryLimits",
    "CategoryScores",
    "ContactContext",
    "EventContext",
    "HybridRetriever",
    "KeywordSearchProvider",
    "PersonContext",
    "RankedCandidate",
    "RerankOptions",
    "RerankWeights",
    "RetrievalConfig",
    "RetrievalResult",
    "ScoredCandidate",
    "SearchProvider",
    "SemanticSearchProvider",
    "TopicContext",
    "rerank",
    "rerank_and_select",
    "select_top",
]
