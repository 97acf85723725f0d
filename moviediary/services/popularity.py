"""
Popularity Engine - keeps the rank cache in step with views and stored popularity

- on_view: +1 per view event
- decay: -0.1 on every ranked movie (scheduled), no floor
- rebuild: replace the whole ranking with the top stored popularity scores (scheduled)
"""
from typing import List, Optional
from moviediary.services.movie_store import MovieStore
import logging

logger = logging.getLogger(__name__)

VIEW_INCREMENT = 1.0
DECAY_STEP = 0.1
REBUILD_SIZE = 10


class PopularityEngine:
    """
    Maintains the rank cache. Shares nothing with the listing path except
    the rank cache itself and the movie store.
    """

    def __init__(self, store: MovieStore, rank_cache):
        self.store = store
        self.rank_cache = rank_cache

    def on_view(self, movie_id: int, user_id: Optional[int] = None) -> float:
        score = self.rank_cache.increment(movie_id, VIEW_INCREMENT)
        logger.debug(f"View recorded for movie {movie_id} (user={user_id}), score now {score:.2f}")
        return score

    def top_ids(self, n: int = REBUILD_SIZE) -> List[int]:
        """Current top-n movie ids; rebuilds synchronously when the ranking is empty."""
        ids = self.rank_cache.top_n(n)
        if not ids:
            logger.info("Rank cache empty, rebuilding from stored popularity")
            self.rebuild()
            ids = self.rank_cache.top_n(n)
        return ids

    def rebuild(self) -> int:
        """
        Replace the ranking with the top stored movies by popularity.

        Returns:
            Number of ranked movies
        """
        movies = self.store.find_top_by_popularity(REBUILD_SIZE)
        entries = [(movie.id, movie.popularity or 0.0) for movie in movies]
        self.rank_cache.replace_all(entries)
        logger.info(f"Popularity ranking rebuilt with {len(entries)} movies")
        return len(entries)

    def decay(self) -> int:
        """
        Lower every ranked score by DECAY_STEP. Ids dropped by a rebuild
        running at the same time are not brought back.

        Returns:
            Number of decayed entries
        """
        decayed = 0
        for movie_id in self.rank_cache.range_all():
            if self.rank_cache.decrement_existing(movie_id, DECAY_STEP) is not None:
                decayed += 1
        logger.info(f"Popularity decay applied to {decayed} movies")
        return decayed
