"""Abstract TTL key-value store."""

from abc import ABC, abstractmethod
from typing import Any


class TTLStore(ABC):
    """
    Key-value store with per-key expiration.

    Values are JSON-serializable objects. Every single-key operation is atomic;
    nothing here spans more than one key. Implementations raise
    StoreUnavailable for any backend failure.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get a value, or None if absent or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Set a value, optionally expiring after ttl_seconds."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        pass

    @abstractmethod
    async def scan(self, prefix: str) -> list[str]:
        """List live keys starting with prefix."""
        pass

    @abstractmethod
    async def ttl(self, key: str) -> float | None:
        """Remaining seconds before expiry, or None for absent/persistent keys."""
        pass

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        """Atomically increment an integer counter, creating it at 0."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None
