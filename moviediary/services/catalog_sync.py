"""
Catalog Sync Engine - hydrates the local movie store from the TMDB catalog

Hydration is idempotent: records whose external id is already stored are
never inserted twice, so concurrent cursor misses may both sync safely.
Listing-path failures degrade to "no new data" and are only logged.
"""
from typing import Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from moviediary.models.movie import Movie
from moviediary.services.catalog_client import CatalogClient, CatalogFetchError
from moviediary.services.catalog_mapping import MappingError, map_catalog_record
from moviediary.services.movie_store import MovieStore, StoreInsertError
from datetime import datetime
import logging
import os

logger = logging.getLogger(__name__)


class CatalogSyncEngine:
    """
    Pulls fresh catalog records into the store.

    Args:
        client: CatalogClient (or any object with the same methods)
        store: MovieStore bound to the caller's session
        refresh_existing: also refresh stored popularity of records already present
        persist_details: write detail lookups for unknown movies back to the store
    """

    def __init__(self,
                 client: CatalogClient,
                 store: MovieStore,
                 refresh_existing: bool = True,
                 persist_details: Optional[bool] = None):
        self.client = client
        self.store = store
        self.refresh_existing = refresh_existing
        if persist_details is None:
            persist_details = os.getenv("PERSIST_DETAIL_FETCHES", "false").lower() == "true"
        self.persist_details = persist_details

    def sync_new_records(self) -> int:
        """
        Fetch the catalog discover page and insert records not stored yet.

        Returns:
            Number of movies inserted (0 on any failure)
        """
        start_time = datetime.now()
        try:
            results = self.client.fetch_discover_page()
        except CatalogFetchError as e:
            logger.warning(f"Catalog sync skipped, discover fetch failed: {e.detail}")
            return 0

        if not results:
            logger.info("Catalog sync: discover page returned no movies")
            return 0

        # Later duplicates within one page are dropped
        by_external_id: Dict[str, Dict] = {}
        for raw in results:
            raw_id = raw.get('id') if isinstance(raw, dict) else None
            if raw_id is None:
                logger.warning(f"Skipping catalog record without an id: {raw!r}")
                continue
            by_external_id.setdefault(str(raw_id), raw)

        try:
            existing = set(self.store.find_external_ids_in(by_external_id.keys()))
            if self.refresh_existing and existing:
                self._refresh_popularity(by_external_id, existing)

            new_movies: List[Movie] = []
            for external_id, raw in by_external_id.items():
                if external_id in existing:
                    continue
                try:
                    new_movies.append(map_catalog_record(raw))
                except MappingError as e:
                    logger.warning(f"Skipping catalog record {external_id}: {str(e)}")

            if not new_movies:
                logger.info(f"Catalog sync: nothing new ({len(existing)} already stored)")
                return 0

            self.store.insert_all(new_movies)
        except StoreInsertError as e:
            logger.error(f"Catalog sync failed to persist batch: {str(e)}")
            return 0
        except SQLAlchemyError as e:
            self.store.rollback()
            logger.error(f"Catalog sync database error: {str(e)}")
            return 0

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(f"Catalog sync inserted {len(new_movies)} movies in {elapsed:.2f}s")
        return len(new_movies)

    def _refresh_popularity(self, by_external_id: Dict[str, Dict], existing: set) -> None:
        refreshed = 0
        for external_id in existing:
            popularity = by_external_id[external_id].get('popularity')
            if isinstance(popularity, (int, float)) and not isinstance(popularity, bool):
                if self.store.update_popularity(external_id, float(popularity)):
                    refreshed += 1
        self.store.commit()
        logger.debug(f"Refreshed popularity for {refreshed} stored movies")

    def fetch_detail(self, movie_id: int) -> Optional[Movie]:
        """
        Store-first detail lookup.

        On a local miss the catalog is queried with the id as its external id.
        The mapped movie is returned transient unless persist_details is on.

        Raises:
            CatalogFetchError: the catalog call failed
        """
        movie = self.store.find_by_id(movie_id)
        if movie is not None:
            return movie

        raw = self.client.fetch_detail(str(movie_id))
        try:
            movie = map_catalog_record(raw)
        except MappingError as e:
            logger.warning(f"Catalog detail for {movie_id} could not be mapped: {str(e)}")
            return None

        if self.persist_details and not self.store.find_external_ids_in([movie.external_id]):
            try:
                self.store.insert_all([movie])
            except StoreInsertError as e:
                logger.warning(f"Detail write-back for {movie.external_id} skipped: {str(e)}")
        return movie

    def search(self, kind: str, query: str) -> List[Dict]:
        """Catalog search pass-through (first page only)."""
        return self.client.search(kind, query)
