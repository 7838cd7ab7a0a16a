"""
TTL key-value store adapters.

Provides:
- TTLStore abstract interface
- MemoryStore for tests and single-process use
- RedisStore for shared deployments
"""

from replygate.store.base import TTLStore
from replygate.store.memory import MemoryStore
from replygate.store.keys import StoreKeys

__all__ = [
    "TTLStore",
    "MemoryStore",
    "StoreKeys",
    "create_store",
]


def create_store(config) -> TTLStore:
    """Create a store from a StoreConfig."""
    if config.backend == "redis":
        from replygate.store.redis_store import RedisStore
        return RedisStore(
            url=config.redis_url,
            key_prefix=config.key_prefix,
            socket_timeout=config.socket_timeout,
        )
    return MemoryStore()
