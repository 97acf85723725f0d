"""
Caching Utilities
=================
Key/value result caches with per-entry TTL, plus a memoizing decorator.

Features:
- In-memory cache with TTL (Time To Live), lazily expired on read
- LRU (Least Recently Used) eviction
- Redis-backed variant sharing the same get/set contract
- Simple decorator pattern for memoizing catalog calls

Usage:
    from moviediary.utils.cache import cache, get_result_cache

    @cache(ttl=300)  # Cache for 5 minutes
    def expensive_function(arg1, arg2):
        return result

    pages = get_result_cache()
    pages.set("movies:lastId:0", [...], ttl=3600)
    pages.get("movies:lastId:0")
"""
from functools import wraps
from typing import Any, Callable, Optional
from collections import OrderedDict
from datetime import datetime, timedelta
import hashlib
import json
import logging
import os
import threading

logger = logging.getLogger(__name__)

PAGE_CACHE_TTL = int(os.getenv("PAGE_CACHE_TTL", 3600))  # Page entries live for 1 hour


class CacheStore:
    """
    Simple in-memory cache with TTL and LRU eviction.
    Per-process only; set CACHE_BACKEND=redis to share across workers.
    """

    def __init__(self, max_size: int = 1000):
        """
        Initialize cache store.

        Args:
            max_size: Maximum number of items in cache (LRU eviction)
        """
        self._cache: OrderedDict = OrderedDict()
        self._max_size = max_size
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def _make_key(self, func_name: str, args: tuple, kwargs: dict) -> str:
        """
        Create a unique cache key from function name and arguments.

        Args:
            func_name: Name of the function
            args: Positional arguments
            kwargs: Keyword arguments

        Returns:
            Unique cache key as string
        """
        key_data = {
            'func': func_name,
            'args': args,
            'kwargs': sorted(kwargs.items())
        }

        key_str = json.dumps(key_data, sort_keys=True, default=str)
        return hashlib.md5(key_str.encode()).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """
        Get value from cache if exists and not expired.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        with self._lock:
            if key not in self._cache:
                self._misses += 1
                return None

            value, expiry = self._cache[key]

            # Expired entries count as absent
            if expiry and datetime.now() > expiry:
                del self._cache[key]
                self._misses += 1
                return None

            # Move to end (LRU)
            self._cache.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Set value in cache with optional TTL.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds (None = no expiration)
        """
        expiry = datetime.now() + timedelta(seconds=ttl) if ttl else None

        with self._lock:
            self._cache[key] = (value, expiry)
            self._cache.move_to_end(key)

            # Evict oldest if over max_size (LRU)
            if len(self._cache) > self._max_size:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]
                logger.debug(f"Evicted cache key: {oldest_key}")

    def clear(self) -> None:
        """Clear all cache."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Cache cleared")

    def get_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache stats
        """
        with self._lock:
            hits, misses, size = self._hits, self._misses, len(self._cache)

        total_requests = hits + misses
        hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0

        return {
            'backend': 'memory',
            'size': size,
            'max_size': self._max_size,
            'hits': hits,
            'misses': misses,
            'hit_rate': f"{hit_rate:.2f}%"
        }


class RedisResultCache:
    """
    Redis-backed result cache. Values are stored as JSON with SETEX,
    so Redis itself expires them.
    """

    def __init__(self, client):
        self._client = client

    def get(self, key: str) -> Optional[Any]:
        raw = self._client.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        payload = json.dumps(value, default=str)
        if ttl:
            self._client.setex(key, ttl, payload)
        else:
            self._client.set(key, payload)

    def clear(self) -> None:
        """Drop every page entry written by the listing service."""
        for key in self._client.scan_iter("movies:lastId:*"):
            self._client.delete(key)

    def get_stats(self) -> dict:
        info = self._client.info("stats")
        return {
            'backend': 'redis',
            'hits': info.get('keyspace_hits', 0),
            'misses': info.get('keyspace_misses', 0),
        }


# Global cache instance backing the @cache decorator
_cache_store = CacheStore(max_size=1000)

_result_cache = None
_result_cache_lock = threading.Lock()


def get_result_cache():
    """
    Process-wide page cache, chosen by CACHE_BACKEND (memory | redis).
    """
    global _result_cache
    if _result_cache is None:
        with _result_cache_lock:
            if _result_cache is None:
                if os.getenv("CACHE_BACKEND", "memory").lower() == "redis":
                    from moviediary.utils.redis_client import get_redis_sync
                    _result_cache = RedisResultCache(get_redis_sync())
                else:
                    _result_cache = CacheStore(max_size=int(os.getenv("RESULT_CACHE_MAX_SIZE", 1000)))
                logger.info(f"Result cache backend: {type(_result_cache).__name__}")
    return _result_cache


def cache(ttl: int = 300):
    """
    Decorator to cache function results.

    Args:
        ttl: Time to live in seconds (default: 300 = 5 minutes)

    Usage:
        @cache(ttl=600)  # Cache for 10 minutes
        def search(kind, query):
            return results

    Note:
        - Arguments are keyed by their str() form
        - Cache is per-process (not shared across workers)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = _cache_store._make_key(func.__name__, args, kwargs)

            cached_value = _cache_store.get(cache_key)
            if cached_value is not None:
                logger.debug(f"Cache hit for {func.__name__}")
                return cached_value

            logger.debug(f"Cache miss for {func.__name__}")
            result = func(*args, **kwargs)
            _cache_store.set(cache_key, result, ttl)

            return result

        return wrapper

    return decorator


def clear_all_cache() -> None:
    """Clear all memoized function results."""
    _cache_store.clear()
    logger.info("All cache cleared")


def get_cache_stats() -> dict:
    """
    Get cache statistics.

    Returns:
        Dictionary with memoization and page cache metrics
    """
    return {
        'memoized': _cache_store.get_stats(),
        'pages': get_result_cache().get_stats(),
    }
