"""
LLM response caching layer.

Identical canonical requests within a caller-supplied TTL return the stored
response without touching the retry loop or the provider.

Two backends share one async contract (get -> value | None, put):
- In-memory dict (default, single process)
- Redis (shared across service restarts, selected by REDIS_URL)

Expiry is checked lazily at read time; nothing is purged in the background.
"""

from __future__ import annotations

import json
import logging
import math
import os
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class CacheBackend(ABC):

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None on a miss or expired entry."""

    @abstractmethod
    async def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store value under key for ttl_seconds."""


class ResponseCache(CacheBackend):
    """
    In-memory TTL cache.

    No await happens between reading and writing the dict, so overlapping
    asyncio tasks cannot corrupt it; concurrent stores are last-write-wins.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def size(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            logger.debug("LLM cache entry expired for key %s", key[:24])
            return None
        return entry.value

    async def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            expires_at=self._clock() + ttl_seconds,
        )

    def clear(self) -> None:
        self._entries.clear()


class RedisResponseCache(CacheBackend):
    """Redis-backed cache. Values are JSON-encoded; Redis enforces the TTL."""

    def __init__(self, redis_url: str | None = None, client: Any = None) -> None:
        if client is None and not redis_url:
            raise ValueError("RedisResponseCache needs a redis_url or a client")
        self._redis = client or aioredis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> Any | None:
        raw = await self._redis.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, key: str, value: Any, ttl_seconds: float) -> None:
        # Redis EX takes whole seconds; round up so short TTLs still store.
        await self._redis.set(key, json.dumps(value), ex=max(1, math.ceil(ttl_seconds)))


def is_cacheable(value: Any) -> bool:
    """Failures and null/empty results are never cached."""
    if value is None:
        return False
    if isinstance(value, (str, list, dict)) and len(value) == 0:
        return False
    return True


_default_cache: CacheBackend | None = None


def get_response_cache(redis_url: str | None = None) -> CacheBackend:
    """
    Return the process-wide cache.

    Args:
        redis_url: If given (or REDIS_URL is set), use Redis as the backend.
    """
    global _default_cache
    if _default_cache is not None:
        return _default_cache

    cache_url = redis_url or os.environ.get("REDIS_URL")
    if cache_url:
        _default_cache = RedisResponseCache(redis_url=cache_url)
    else:
        _default_cache = ResponseCache()
    logger.info("LLM response cache initialized (backend=%s)", type(_default_cache).__name__)
    return _default_cache


def reset_response_cache() -> None:
    """Reset the singleton (for testing)."""
    global _default_cache
    _default_cache = None
