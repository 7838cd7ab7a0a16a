"""Redis-backed TTL store."""

import json
from typing import Any

import redis.asyncio as redis_asyncio
from loguru import logger
from redis.exceptions import RedisError

from replygate.errors import StoreUnavailable
from replygate.store.base import TTLStore


class RedisStore(TTLStore):
    """
    TTL store on top of redis.asyncio.

    Values are stored as JSON strings. Every backend error is re-raised as
    StoreUnavailable so callers never see driver-specific exceptions.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        key_prefix: str = "",
        socket_timeout: float = 2.0,
        client: Any | None = None,
    ):
        self.url = url
        self.key_prefix = key_prefix
        self._client = client or redis_asyncio.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
        )

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _unavailable(self, op: str, key: str, error: Exception) -> StoreUnavailable:
        logger.error(f"Redis {op} failed for {key}: {error}")
        return StoreUnavailable(f"Redis {op} failed for {key}: {error}", key=key)

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(self._key(key))
        except (RedisError, OSError) as e:
            raise self._unavailable("GET", key, e) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            # Plain strings written by other services
            return raw

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        payload = json.dumps(value)
        try:
            if ttl_seconds is not None and ttl_seconds > 0:
                await self._client.set(self._key(key), payload, px=int(ttl_seconds * 1000))
            else:
                await self._client.set(self._key(key), payload)
        except (RedisError, OSError) as e:
            raise self._unavailable("SET", key, e) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(self._key(key)))
        except (RedisError, OSError) as e:
            raise self._unavailable("DEL", key, e) from e

    async def scan(self, prefix: str) -> list[str]:
        pattern = f"{self._key(prefix)}*"
        keys = []
        try:
            async for key in self._client.scan_iter(match=pattern, count=200):
                keys.append(key[len(self.key_prefix):])
        except (RedisError, OSError) as e:
            raise self._unavailable("SCAN", prefix, e) from e
        return sorted(keys)

    async def ttl(self, key: str) -> float | None:
        try:
            remaining_ms = await self._client.pttl(self._key(key))
        except (RedisError, OSError) as e:
            raise self._unavailable("PTTL", key, e) from e
        # -2: missing, -1: no expiry
        if remaining_ms is None or remaining_ms < 0:
            return None
        return remaining_ms / 1000

    async def incr(self, key: str, amount: int = 1) -> int:
        try:
            return int(await self._client.incrby(self._key(key), amount))
        except (RedisError, OSError) as e:
            raise self._unavailable("INCRBY", key, e) from e

    async def close(self) -> None:
        await self._client.aclose()
