"""
Rank Cache - score-sorted popularity set keyed by movie id

Backends:
- InMemoryRankCache: per-process dict, ties broken by first insertion
- RedisRankCache: sorted set under a fixed key, shared across workers

replace_all never exposes a half-cleared set: readers see either the
previous entries or the new ones.
"""
from typing import Dict, Iterable, List, Optional, Tuple
import itertools
import logging
import os
import threading

logger = logging.getLogger(__name__)

POPULAR_MOVIES_KEY = "popular_movies"


class InMemoryRankCache:
    """
    Score-sorted cache held in process memory.

    Each entry is (score, insertion sequence); top_n orders by descending
    score, then by ascending sequence.
    """

    def __init__(self):
        self._entries: Dict[int, Tuple[float, int]] = {}
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def increment(self, movie_id: int, delta: float) -> float:
        with self._lock:
            score, seq = self._entries.get(movie_id, (0.0, None))
            if seq is None:
                seq = next(self._sequence)
            score += delta
            self._entries[movie_id] = (score, seq)
            return score

    def decrement_existing(self, movie_id: int, step: float) -> Optional[float]:
        """Lower an entry's score; ids no longer ranked are left absent."""
        with self._lock:
            entry = self._entries.get(movie_id)
            if entry is None:
                return None
            score = entry[0] - step
            self._entries[movie_id] = (score, entry[1])
            return score

    def _snapshot(self) -> Dict[int, Tuple[float, int]]:
        with self._lock:
            return dict(self._entries)

    def score(self, movie_id: int) -> Optional[float]:
        entry = self._snapshot().get(movie_id)
        return entry[0] if entry else None

    def top_n(self, n: int) -> List[int]:
        if n <= 0:
            return []
        ranked = sorted(self._snapshot().items(), key=lambda item: (-item[1][0], item[1][1]))
        return [movie_id for movie_id, _ in ranked[:n]]

    def range_all(self) -> List[int]:
        return list(self._snapshot().keys())

    def replace_all(self, entries: Iterable[Tuple[int, float]]) -> None:
        fresh: Dict[int, Tuple[float, int]] = {}
        for movie_id, score in entries:
            if movie_id in fresh:
                continue
            fresh[movie_id] = (float(score), next(self._sequence))
        with self._lock:
            self._entries = fresh

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def __len__(self):
        return len(self._snapshot())


class RedisRankCache:
    """
    Sorted-set rank cache in Redis.

    replace_all writes a staging key and RENAMEs it over the live key inside
    one MULTI/EXEC, which Redis applies atomically.
    """

    def __init__(self, client, key: str = POPULAR_MOVIES_KEY):
        self._client = client
        self.key = key

    def increment(self, movie_id: int, delta: float) -> float:
        return float(self._client.zincrby(self.key, delta, str(movie_id)))

    def decrement_existing(self, movie_id: int, step: float) -> Optional[float]:
        # XX: never recreate a member dropped by a concurrent replace_all
        value = self._client.zadd(self.key, {str(movie_id): -step}, xx=True, incr=True)
        return float(value) if value is not None else None

    def score(self, movie_id: int) -> Optional[float]:
        value = self._client.zscore(self.key, str(movie_id))
        return float(value) if value is not None else None

    def top_n(self, n: int) -> List[int]:
        if n <= 0:
            return []
        return [int(member) for member in self._client.zrevrange(self.key, 0, n - 1)]

    def range_all(self) -> List[int]:
        return [int(member) for member in self._client.zrange(self.key, 0, -1)]

    def replace_all(self, entries: Iterable[Tuple[int, float]]) -> None:
        mapping: Dict[str, float] = {}
        for movie_id, score in entries:
            mapping.setdefault(str(movie_id), float(score))

        if not mapping:
            self._client.delete(self.key)
            return

        staging_key = f"{self.key}:staging"
        pipe = self._client.pipeline(transaction=True)
        pipe.delete(staging_key)
        pipe.zadd(staging_key, mapping)
        pipe.rename(staging_key, self.key)
        pipe.execute()

    def clear(self) -> None:
        self._client.delete(self.key)

    def __len__(self):
        return int(self._client.zcard(self.key))


_rank_cache = None
_rank_cache_lock = threading.Lock()


def get_rank_cache():
    """Process-wide rank cache, chosen by CACHE_BACKEND (memory | redis)."""
    global _rank_cache
    if _rank_cache is None:
        with _rank_cache_lock:
            if _rank_cache is None:
                if os.getenv("CACHE_BACKEND", "memory").lower() == "redis":
                    from moviediary.utils.redis_client import get_redis_sync
                    _rank_cache = RedisRankCache(get_redis_sync())
                else:
                    _rank_cache = InMemoryRankCache()
                logger.info(f"Rank cache backend: {type(_rank_cache).__name__}")
    return _rank_cache
