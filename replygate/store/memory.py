"""In-process TTL store."""

import json
import time
from typing import Any, Callable

from replygate.store.base import TTLStore


class MemoryStore(TTLStore):
    """
    Dict-backed TTL store.

    Expiry is evaluated lazily against an injectable clock, so tests can move
    time forward without sleeping. Values are serialized on write to keep the
    same isolation guarantees as a real backend.
    """

    def __init__(self, clock: Callable[[], float] | None = None):
        self._clock = clock or time.time
        self._data: dict[str, str] = {}
        self._expires: dict[str, float] = {}

    def _purge(self, key: str) -> None:
        expires_at = self._expires.get(key)
        if expires_at is not None and self._clock() >= expires_at:
            self._data.pop(key, None)
            self._expires.pop(key, None)

    async def get(self, key: str) -> Any | None:
        self._purge(key)
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        self._data[key] = json.dumps(value)
        if ttl_seconds is not None and ttl_seconds > 0:
            self._expires[key] = self._clock() + ttl_seconds
        else:
            self._expires.pop(key, None)

    async def delete(self, key: str) -> bool:
        self._purge(key)
        self._expires.pop(key, None)
        return self._data.pop(key, None) is not None

    async def scan(self, prefix: str) -> list[str]:
        for key in list(self._data):
            self._purge(key)
        return sorted(k for k in self._data if k.startswith(prefix))

    async def ttl(self, key: str) -> float | None:
        self._purge(key)
        if key not in self._data or key not in self._expires:
            return None
        return self._expires[key] - self._clock()

    async def incr(self, key: str, amount: int = 1) -> int:
        current = await self.get(key)
        value = int(current or 0) + amount
        expires_at = self._expires.get(key)
        self._data[key] = json.dumps(value)
        if expires_at is not None:
            self._expires[key] = expires_at
        return value

    def __len__(self) -> int:
        return len(self._data)
