"""
Caching layer for stored pricing configuration.
Uses Redis for distributed caching with fallback to in-memory cache.
"""

import logging
import time
from typing import Dict, Iterable, Optional

import redis

logger = logging.getLogger(__name__)

KEY_PREFIX = "fleetfare:"


class ConfigCache:
    """
    Multi-level caching strategy for configuration documents:
    1. In-memory cache with TTL (process level)
    2. Redis cache (shared across processes)
    3. Database (source of truth, owned by the store)
    """

    def __init__(self, redis_url: Optional[str] = None, ttl: int = 3600):
        """
        Initialize cache with optional Redis connection.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379)
            ttl: Time to live in seconds (default 1 hour)
        """
        self.ttl = ttl
        self.redis_client = None

        self._memory_cache: Dict[str, str] = {}
        self._cache_timestamps: Dict[str, float] = {}

        if redis_url:
            try:
                self.redis_client = redis.from_url(redis_url)
                self.redis_client.ping()
                logger.info("Redis cache initialized successfully")
            except redis.RedisError as e:
                logger.warning("Redis connection failed: %s. Using in-memory cache only.", e)
                self.redis_client = None

    def _make_key(self, scope_key: str) -> str:
        return f"{KEY_PREFIX}{scope_key}"

    def _is_memory_cache_valid(self, key: str) -> bool:
        if key not in self._cache_timestamps:
            return False
        return (time.time() - self._cache_timestamps[key]) < self.ttl

    def get(self, scope_key: str) -> Optional[str]:
        """
        Cached raw value for a key, None on a miss.

        Cache lookup order:
        1. In-memory cache
        2. Redis cache
        """
        key = self._make_key(scope_key)

        if key in self._memory_cache and self._is_memory_cache_valid(key):
            return self._memory_cache[key]

        if self.redis_client:
            try:
                cached_value = self.redis_client.get(key)
                if cached_value is not None:
                    value = cached_value.decode("utf-8") if isinstance(cached_value, bytes) else cached_value
                    self._memory_cache[key] = value
                    self._cache_timestamps[key] = time.time()
                    return value
            except redis.RedisError as e:
                logger.warning("Redis get error: %s", e)

        return None

    def set(self, scope_key: str, value: str) -> None:
        """Store a value in all cache levels."""
        key = self._make_key(scope_key)

        self._memory_cache[key] = value
        self._cache_timestamps[key] = time.time()

        if self.redis_client:
            try:
                self.redis_client.setex(key, self.ttl, value)
            except redis.RedisError as e:
                logger.warning("Redis set error: %s", e)

    def invalidate(self, scope_keys: Optional[Iterable[str]] = None) -> None:
        """
        Invalidate cache entries.
        If keys are given, invalidate those entries.
        Otherwise, invalidate all entries.
        """
        if scope_keys is not None:
            keys = [self._make_key(k) for k in scope_keys]
            for key in keys:
                self._memory_cache.pop(key, None)
                self._cache_timestamps.pop(key, None)
            if self.redis_client and keys:
                try:
                    self.redis_client.delete(*keys)
                except redis.RedisError as e:
                    logger.warning("Redis delete error: %s", e)
            return

        self._memory_cache.clear()
        self._cache_timestamps.clear()
        if self.redis_client:
            try:
                for key in self.redis_client.scan_iter(f"{KEY_PREFIX}*"):
                    self.redis_client.delete(key)
            except redis.RedisError as e:
                logger.warning("Redis clear error: %s", e)


# Global cache instance (singleton pattern)
_config_cache: Optional[ConfigCache] = None


def get_config_cache() -> ConfigCache:
    """Get singleton config cache instance."""
    global _config_cache
    if _config_cache is None:
        from fleetfare.config import settings
        _config_cache = ConfigCache(
            redis_url=settings.REDIS_URL or None,
            ttl=settings.CACHE_TTL_SECONDS,
        )
    return _config_cache
