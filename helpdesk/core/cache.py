"""Redis-backed cache for user directory lookups."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Optional

import redis
from redis.exceptions import ConnectionError, RedisError

from helpdesk.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def _get_redis_client() -> "redis.Redis | _InMemoryCache":
    """Get or create the Redis client, or an in-process fallback."""
    global _redis_client

    if _redis_client is None:
        try:
            pool = redis.ConnectionPool.from_url(
                settings.REDIS_CACHE_URL,
                max_connections=20,
                decode_responses=True,
            )
            client = redis.Redis(connection_pool=pool)
            client.ping()
        except (ConnectionError, RedisError) as e:
            logger.warning(
                f"Failed to connect to Redis cache: {e}. Using fallback in-memory cache."
            )
            return _InMemoryCache()
        _redis_client = client
        logger.info(f"Redis cache connected: {settings.REDIS_CACHE_URL}")

    return _redis_client


class _InMemoryCache:
    """Fallback cache when Redis is unavailable. Honors TTLs lazily."""

    def __init__(self):
        self._cache: dict[str, tuple[Any, Optional[float]]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            self._cache.pop(key, None)
            return None
        return value

    def set(self, key: str, value: Any, ex: Optional[int] = None) -> None:
        expires_at = time.monotonic() + ex if ex else None
        self._cache[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()


class RedisCache:
    """JSON values in Redis with a default TTL."""

    def __init__(self, default_ttl: int = 60, client=None):
        """
        Initialize cache.

        Args:
            default_ttl: Default time-to-live in seconds
            client: Explicit backend; connects to REDIS_CACHE_URL when omitted
        """
        self.default_ttl = default_ttl
        self._client = client if client is not None else _get_redis_client()

    @property
    def is_fallback(self) -> bool:
        return isinstance(self._client, _InMemoryCache)

    def get(self, key: str) -> Optional[Any]:
        try:
            if self.is_fallback:
                return self._client.get(key)

            value = self._client.get(key)
            if value is None:
                return None
            try:
                return json.loads(value)
            except (json.JSONDecodeError, TypeError):
                return value
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Redis cache get error for key {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            ttl = ttl or self.default_ttl

            if self.is_fallback:
                self._client.set(key, value, ex=ttl)
                return

            if isinstance(value, (dict, list)):
                serialized = json.dumps(value)
            else:
                serialized = str(value)
            self._client.setex(key, ttl, serialized)
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Redis cache set error for key {key}: {e}")

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Redis cache delete error for key {key}: {e}")

    def clear(self) -> None:
        try:
            if self.is_fallback:
                self._client.clear()
                return
            self._client.flushdb()
        except (ConnectionError, RedisError) as e:
            logger.warning(f"Redis cache clear error: {e}")


_cache: Optional[RedisCache] = None


def get_cache() -> RedisCache:
    """Get the process-wide cache, connecting on first use."""
    global _cache
    if _cache is None:
        _cache = RedisCache(default_ttl=settings.USER_CACHE_TTL_SECONDS)
    return _cache


def user_cache_key(user_id) -> str:
    return f"user:{user_id}"

