"""
Listing Service - cursor-paginated movie listings with popular movies up front

Flow for get_page(cursor):
1. Resolve the current popular ids (rebuilding an empty ranking)
2. Page cache hit -> merge and return
3. Miss -> query the store after the cursor; if empty, hydrate once and retry once
4. Cache the cursor slice (before merging) for PAGE_CACHE_TTL
5. Merge: popular first, drop duplicate ids, keep at most PAGE_SIZE
"""
from typing import Iterable, List, Optional
from moviediary.models.movie import Movie
from moviediary.schemas.movie import MovieProjection
from moviediary.services.catalog_mapping import projection_from_payload, to_projection
from moviediary.services.catalog_sync import CatalogSyncEngine
from moviediary.services.movie_store import MovieStore
from moviediary.services.popularity import PopularityEngine
from moviediary.utils.cache import PAGE_CACHE_TTL
import logging

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
PAGE_CACHE_PREFIX = "movies:lastId:"


def page_cache_key(cursor: int) -> str:
    return f"{PAGE_CACHE_PREFIX}{cursor}"


def merge_projections(popular: Iterable[MovieProjection],
                      page: Iterable[MovieProjection],
                      limit: int = PAGE_SIZE) -> List[MovieProjection]:
    """Popular entries first; the first occurrence of an id wins; at most `limit` entries."""
    merged: List[MovieProjection] = []
    seen = set()
    for projection in list(popular) + list(page):
        if projection.id in seen:
            continue
        seen.add(projection.id)
        merged.append(projection)
        if len(merged) >= limit:
            break
    return merged


class ListingService:
    """
    Facade over the store, page cache, catalog sync and popularity ranking.

    Usage:
        service = ListingService(store, result_cache, sync_engine, popularity)
        page = service.get_page(cursor=0)
        service.record_view(movie_id=7)
    """

    def __init__(self,
                 store: MovieStore,
                 result_cache,
                 sync_engine: CatalogSyncEngine,
                 popularity: PopularityEngine,
                 page_ttl: int = PAGE_CACHE_TTL):
        self.store = store
        self.result_cache = result_cache
        self.sync_engine = sync_engine
        self.popularity = popularity
        self.page_ttl = page_ttl

    def get_page(self, cursor: int = 0) -> List[MovieProjection]:
        if cursor is None:
            cursor = 0
        if cursor < 0:
            raise ValueError("cursor must be >= 0")

        popular = self._popular_projections()

        cache_key = page_cache_key(cursor)
        cached = self.result_cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Page cache hit for {cache_key}")
            page = [projection_from_payload(item) for item in cached]
            return merge_projections(popular, page)

        movies = self.store.find_after(cursor, PAGE_SIZE)
        if not movies:
            logger.info(f"No stored movies after cursor {cursor}, syncing from catalog")
            self.sync_engine.sync_new_records()
            movies = self.store.find_after(cursor, PAGE_SIZE)

        page = [to_projection(movie) for movie in movies]
        if page:
            self.result_cache.set(cache_key, [p.model_dump() for p in page], self.page_ttl)

        return merge_projections(popular, page)

    def _popular_projections(self) -> List[MovieProjection]:
        ids = self.popularity.top_ids(PAGE_SIZE)
        if not ids:
            return []
        by_id = {movie.id: movie for movie in self.store.find_by_ids(ids)}
        # Keep rank order; ranked ids missing from the store are dropped
        return [to_projection(by_id[movie_id]) for movie_id in ids if movie_id in by_id]

    def record_view(self, movie_id: int, user_id: Optional[int] = None) -> None:
        self.popularity.on_view(movie_id, user_id=user_id)

    def get_detail(self, movie_id: int) -> Optional[Movie]:
        return self.sync_engine.fetch_detail(movie_id)

    def find_movie(self, movie_id: int) -> Optional[Movie]:
        return self.store.find_by_id(movie_id)

    def search(self, kind: str, query: str) -> List[dict]:
        return self.sync_engine.search(kind, query)
