"""
Run one catalog hydration pass from the command line
Fetches the TMDB discover page and stores movies not seen before

Usage:
    python -m moviediary.migrations.sync_catalog
    python -m moviediary.migrations.sync_catalog --rebuild-ranking
"""
from moviediary.database import get_db_session
from moviediary.services.catalog_client import CatalogClient
from moviediary.services.catalog_sync import CatalogSyncEngine
from moviediary.services.movie_store import MovieStore
from moviediary.services.popularity import PopularityEngine
from moviediary.services.rank_cache import get_rank_cache


def sync_catalog(rebuild_ranking: bool = False, session_factory=get_db_session, client=None) -> int:
    """
    Hydrate the store once.

    Args:
        rebuild_ranking: also rebuild the popularity ranking afterwards

    Returns:
        Number of movies inserted
    """
    print("🎬 Syncing movies from the catalog...")

    db = session_factory()
    try:
        store = MovieStore(db)
        inserted = CatalogSyncEngine(client or CatalogClient(), store).sync_new_records()
        print(f"  • Inserted: {inserted} new movies")

        if rebuild_ranking:
            ranked = PopularityEngine(store, get_rank_cache()).rebuild()
            print(f"  • Ranked: {ranked} movies")
        return inserted
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Pull new movies from the TMDB catalog')
    parser.add_argument(
        '--rebuild-ranking',
        action='store_true',
        help='Rebuild the popularity ranking after syncing (shared only with CACHE_BACKEND=redis)'
    )

    args = parser.parse_args()

    print("=" * 60)
    print("  CATALOG SYNC")
    print("=" * 60)
    print()

    sync_catalog(args.rebuild_ranking)
