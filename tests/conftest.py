import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure background jobs stay disabled during tests
os.environ.setdefault("ENABLE_BACKGROUND_JOBS", "false")

from moviediary.database import Base, get_db
from moviediary.main import app
from moviediary.models.movie import Movie
from moviediary.services.catalog_client import CatalogFetchError
from moviediary.services.catalog_sync import CatalogSyncEngine
from moviediary.services.listing_service import ListingService
from moviediary.services.movie_store import MovieStore
from moviediary.services.popularity import PopularityEngine
from moviediary.services.rank_cache import InMemoryRankCache
from moviediary.utils.cache import CacheStore, clear_all_cache
from moviediary.utils.dependencies import get_catalog_client
from moviediary.routes import admin

SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def catalog_movie(tmdb_id, title=None, popularity=1.0, **extra):
    """A TMDB discover-style movie payload"""
    payload = {
        "id": tmdb_id,
        "title": title or f"Catalog Movie {tmdb_id}",
        "release_date": "2024-05-01",
        "vote_average": 7.1,
        "genre_ids": [28, 12],
        "overview": f"Overview {tmdb_id}",
        "poster_path": f"/poster{tmdb_id}.jpg",
        "backdrop_path": f"/backdrop{tmdb_id}.jpg",
        "popularity": popularity,
        "vote_count": 120,
    }
    payload.update(extra)
    return payload


class FakeCatalogClient:
    """Stands in for CatalogClient; records every call"""

    def __init__(self, results=None, details=None, error=None):
        self.results = list(results or [])
        self.details = dict(details or {})
        self.error = error
        self.discover_calls = 0
        self.detail_calls = []
        self.search_calls = []

    def fetch_discover_page(self):
        self.discover_calls += 1
        if self.error:
            raise self.error
        return [dict(r) if isinstance(r, dict) else r for r in self.results]

    def fetch_detail(self, external_id):
        self.detail_calls.append(external_id)
        if self.error:
            raise self.error
        if external_id not in self.details:
            raise CatalogFetchError(f"TMDB API error: 404 for {external_id}")
        return dict(self.details[external_id])

    def search(self, kind, query):
        self.search_calls.append((kind, query))
        if self.error:
            raise self.error
        return [dict(r) for r in self.results]


@pytest.fixture(autouse=True)
def _reset_memoized_calls():
    clear_all_cache()
    yield
    clear_all_cache()


@pytest.fixture
def db_session():
    """Provide a clean database session for each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db_session):
    return MovieStore(db_session)


@pytest.fixture
def fake_catalog():
    return FakeCatalogClient()


@pytest.fixture
def rank_cache():
    return InMemoryRankCache()


@pytest.fixture
def result_cache():
    return CacheStore(max_size=100)


@pytest.fixture
def make_movie(db_session):
    """Insert a stored movie and return it"""
    counter = {"next": 1}

    def _make(title=None, popularity=0.0, external_id=None):
        n = counter["next"]
        counter["next"] += 1
        movie = Movie(
            external_id=external_id or f"ext-{n}",
            title=title or f"Stored Movie {n}",
            overview="",
            genres=[18],
            poster_url=f"https://image.tmdb.org/t/p/w500/p{n}.jpg",
            popularity=popularity,
            vote_count=10,
        )
        db_session.add(movie)
        db_session.commit()
        db_session.refresh(movie)
        return movie

    return _make


@pytest.fixture
def listing_service(store, result_cache, rank_cache, fake_catalog):
    return ListingService(
        store=store,
        result_cache=result_cache,
        sync_engine=CatalogSyncEngine(fake_catalog, store),
        popularity=PopularityEngine(store, rank_cache),
    )


@pytest.fixture
def client(db_session, fake_catalog, rank_cache, result_cache, monkeypatch):
    """FastAPI test client with the database, catalog and caches overridden."""

    def override_get_db():
        test_db = TestingSessionLocal()
        try:
            yield test_db
        finally:
            test_db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog_client] = lambda: fake_catalog
    monkeypatch.setattr("moviediary.utils.dependencies.get_rank_cache", lambda: rank_cache)
    monkeypatch.setattr("moviediary.utils.dependencies.get_result_cache", lambda: result_cache)
    monkeypatch.setattr(admin, "get_rank_cache", lambda: rank_cache)
    monkeypatch.setenv("ENABLE_BACKGROUND_JOBS", "false")

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_catalog_client, None)


@pytest.fixture
def catalog_payload():
    """Factory for TMDB discover-style payloads"""
    return catalog_movie


@pytest.fixture
def session_factory(db_session):
    """Session factory for code that opens its own sessions (jobs, scripts)"""
    return TestingSessionLocal
