"""Search collaborator interfaces for hybrid retrieval."""

from abc import ABC, abstractmethod

from replygate.retrieval.models import ScoredCandidate


class SearchProvider(ABC):
    """
    A per-category search over the knowledge store.

    Implementations talk to the external knowledge store; none ship here.
    """

    name: str = "search"

    @abstractmethod
    async def search(
        self,
        query: str,
        contact_id: str,
        category: str,
        top_k: int,
        min_score: float,
    ) -> list[ScoredCandidate]:
        """
        Search one category.

        Args:
            query: Message text.
            contact_id: Contact the message came from.
            category: "people", "topics" or "events".
            top_k: Maximum results wanted.
            min_score: Minimum score wanted.

        Returns:
            Scored candidates, best first.
        """
        pass

    async def is_available(self) -> bool:
        return True


class SemanticSearchProvider(SearchProvider):
    """Vector-similarity search."""

    name = "semantic"


class KeywordSearchProvider(SearchProvider):
    """Keyword / graph search."""

    name = "keyword"
