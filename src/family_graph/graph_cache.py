#!/usr/bin/env python3

import logging
import time
from typing import Optional, Protocol

import redis
from cachetools import TLRUCache

# Set up logging
logger = logging.getLogger(__name__)


class GraphCache(Protocol):
    """Key/value store for serialized graph results."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, blob: str, ttl: int) -> None: ...

    def delete(self, key: str) -> None: ...


def _entry_expiry(key, value, now):
    _, ttl = value
    return now + ttl


class MemoryGraphCache:
    """In-process cache; each entry carries its own TTL"""

    def __init__(self, maxsize: int = 1024, timer=time.monotonic):
        self._cache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=timer)

    def get(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        return entry[0]

    def set(self, key: str, blob: str, ttl: int) -> None:
        self._cache[key] = (blob, ttl)

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self):
        self._cache.clear()

    def __len__(self):
        return len(self._cache)


class RedisGraphCache:
    """Cache shared between API processes and Celery workers"""

    def __init__(self, redis_url: str, client=None):
        if client is None:
            client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._client = client
        logger.info(f"Redis graph cache configured at {redis_url}")

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, blob: str, ttl: int) -> None:
        self._client.set(key, blob, ex=ttl)

    def delete(self, key: str) -> None:
        self._client.delete(key)
