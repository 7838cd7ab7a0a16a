"""Data types for hybrid context retrieval."""

from dataclasses import asdict, dataclass, field
from typing import Any

CATEGORIES = ("people", "topics", "events")


@dataclass
class CategoryLimits:
    """Maximum items per category."""
    topics: int = 10
    people: int = 10
    events: int = 5

    def get(self, category: str) -> int:
        return getattr(self, category)


@dataclass
class CategoryScores:
    """Minimum similarity score per category."""
    topics: float = 0.7
    people: float = 0.65
    events: float = 0.7

    def get(self, category: str) -> float:
        return getattr(self, category)


@dataclass
class RerankWeights:
    similarity: float = 0.5
    recency: float = 0.25
    frequency: float = 0.15
    entity: float = 0.1


@dataclass
class RerankOptions:
    """Weights and cutoffs applied to semantic hits in each category."""
    enabled: bool = True
    weights: RerankWeights = field(default_factory=RerankWeights)
    max_results: int = 10
    min_score: float = 0.4
    score_drop: float = 0.3  # Largest allowed fall from the previous kept item


@dataclass
class RetrievalConfig:
    """Per-invocation retrieval settings."""
    enabled: bool = True
    top_k: CategoryLimits = field(default_factory=CategoryLimits)
    min_score: CategoryScores = field(default_factory=CategoryScores)
    fallback_threshold: int = 3
    rerank: RerankOptions = field(default_factory=RerankOptions)

    @classmethod
    def from_settings(cls, settings: Any) -> "RetrievalConfig":
        """Build from a RetrievalSettings config section."""
        return cls(
            enabled=settings.enabled,
            top_k=CategoryLimits(**settings.top_k.model_dump()),
            min_score=CategoryScores(**settings.min_score.model_dump()),
            fallback_threshold=settings.fallback_threshold,
            rerank=RerankOptions(
                enabled=settings.rerank.enabled,
                weights=RerankWeights(**settings.rerank.weights.model_dump()),
                max_results=settings.rerank.max_results,
                min_score=settings.rerank.min_score,
                score_drop=settings.rerank.score_drop,
            ),
        )


@dataclass
class ScoredCandidate:
    """One search hit from either search strategy."""
    name: str
    score: float
    category: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class PersonContext:
    name: str
    occupation: str | None = None
    company: str | None = None
    industry: str | None = None
    notes: str | None = None
    last_mentioned: float | None = None


@dataclass
class TopicContext:
    name: str
    times: int = 1
    category: str | None = None
    last_mentioned: float | None = None


@dataclass
class EventContext:
    name: str
    date: str | None = None
    description: str | None = None


def _to_item(candidate: ScoredCandidate) -> PersonContext | TopicContext | EventContext:
    attrs = candidate.attributes
    if candidate.category == "people":
        return PersonContext(
            name=candidate.name,
            occupation=attrs.get("occupation"),
            company=attrs.get("company"),
            industry=attrs.get("industry"),
            notes=attrs.get("notes"),
            last_mentioned=attrs.get("last_mentioned"),
        )
    if candidate.category == "topics":
        return TopicContext(
            name=candidate.name,
            times=int(attrs.get("times") or 1),
            category=attrs.get("category"),
            last_mentioned=attrs.get("last_mentioned"),
        )
    if candidate.category == "events":
        return EventContext(
            name=candidate.name,
            date=attrs.get("date"),
            description=attrs.get("description"),
        )
    raise ValueError(f"Unknown retrieval category: {candidate.category}")


@dataclass
class ContactContext:
    """People, topics and events relevant to a message."""
    people: list[PersonContext] = field(default_factory=list)
    topics: list[TopicContext] = field(default_factory=list)
    events: list[EventContext] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.people) + len(self.topics) + len(self.events)

    def is_empty(self) -> bool:
        return self.total == 0

    def get(self, category: str) -> list:
        return getattr(self, category)

    @classmethod
    def from_candidates(cls, candidates: dict[str, list[ScoredCandidate]]) -> "ContactContext":
        context = cls()
        for category in CATEGORIES:
            for candidate in candidates.get(category, []):
                context.get(category).append(_to_item(candidate))
        return context

    def to_dict(self) -> dict[str, Any]:
        return {
            "people": [asdict(p) for p in self.people],
            "topics": [asdict(t) for t in self.topics],
            "events": [asdict(e) for e in self.events],
        }


@dataclass
class RetrievalResult:
    """Outcome of one retrieval; method is semantic, keyword or error."""
    context: ContactContext
    method: str
    latency_ms: float = 0.0
    stats: dict[str, int] = field(default_factory=dict)
