from fastapi import Depends
from sqlalchemy.orm import Session
from moviediary.database import get_db
from moviediary.services.catalog_client import CatalogClient
from moviediary.services.catalog_sync import CatalogSyncEngine
from moviediary.services.listing_service import ListingService
from moviediary.services.movie_store import MovieStore
from moviediary.services.popularity import PopularityEngine
from moviediary.services.rank_cache import get_rank_cache
from moviediary.utils.cache import get_result_cache


def get_catalog_client() -> CatalogClient:
    return CatalogClient()


# Dependency wiring one ListingService per request around the request's session
def get_listing_service(
    db: Session = Depends(get_db),
    client: CatalogClient = Depends(get_catalog_client),
) -> ListingService:
    store = MovieStore(db)
    return ListingService(
        store=store,
        result_cache=get_result_cache(),
        sync_engine=CatalogSyncEngine(client, store),
        popularity=PopularityEngine(store, get_rank_cache()),
    )
