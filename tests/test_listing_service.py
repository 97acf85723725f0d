"""
Listing pipeline: cache-aside pages, hydration on miss, popular merge
"""
import pytest

from moviediary.schemas.movie import MovieProjection
from moviediary.services.catalog_client import CatalogFetchError
from moviediary.services.listing_service import PAGE_SIZE, merge_projections, page_cache_key


def projection(movie_id, title=None):
    return MovieProjection(id=movie_id, title=title or f"M{movie_id}")


class TestMerge:

    def test_popular_first_and_deduplicated(self):
        merged = merge_projections([projection(7)], [projection(7), projection(8), projection(9)])

        assert [p.id for p in merged] == [7, 8, 9]

    def test_first_occurrence_wins(self):
        merged = merge_projections([projection(7, "popular")], [projection(7, "page")])

        assert merged[0].title == "popular"

    def test_truncates_to_page_size(self):
        merged = merge_projections([projection(i) for i in range(100, 105)],
                                   [projection(i) for i in range(1, 11)])

        assert len(merged) == PAGE_SIZE
        assert [p.id for p in merged[:5]] == [100, 101, 102, 103, 104]


class TestGetPage:

    def test_cache_key_format(self):
        assert page_cache_key(0) == "movies:lastId:0"
        assert page_cache_key(25) == "movies:lastId:25"

    def test_empty_store_syncs_once_then_serves_new_movies(self, listing_service, fake_catalog, catalog_payload):
        fake_catalog.results = [catalog_payload(1), catalog_payload(2), catalog_payload(3)]

        page = listing_service.get_page(0)

        assert fake_catalog.discover_calls == 1
        assert sorted(p.title for p in page) == ["Catalog Movie 1", "Catalog Movie 2", "Catalog Movie 3"]

    def test_still_empty_after_sync_returns_empty_page(self, listing_service, fake_catalog):
        assert listing_service.get_page(0) == []
        assert fake_catalog.discover_calls == 1

    def test_sync_failure_never_reaches_the_caller(self, listing_service, fake_catalog, make_movie):
        movie = make_movie(popularity=4.0)
        fake_catalog.error = CatalogFetchError("TMDB API error: down")

        page = listing_service.get_page(movie.id)

        assert [p.id for p in page] == [movie.id]
        assert fake_catalog.discover_calls == 1

    def test_no_sync_when_store_has_data(self, listing_service, fake_catalog, make_movie):
        for _ in range(3):
            make_movie()

        listing_service.get_page(0)

        assert fake_catalog.discover_calls == 0

    def test_at_most_ten_unique_entries(self, listing_service, make_movie):
        for i in range(25):
            make_movie(popularity=float(i))

        for cursor in (0, 5, 12, 20, 30):
            page = listing_service.get_page(cursor)
            ids = [p.id for p in page]
            assert len(ids) <= PAGE_SIZE
            assert len(ids) == len(set(ids))

    def test_popular_movie_listed_once_at_front(self, listing_service, rank_cache, make_movie):
        movies = [make_movie() for _ in range(12)]
        seven = movies[6]
        rank_cache.replace_all([(seven.id, 100.0)])

        ids = [p.id for p in listing_service.get_page(seven.id - 1)]

        assert ids[0] == seven.id
        assert ids.count(seven.id) == 1

    def test_popular_slice_follows_rank_order(self, listing_service, rank_cache, make_movie):
        a, b, c = make_movie(), make_movie(), make_movie()
        rank_cache.replace_all([(a.id, 1.0), (b.id, 3.0), (c.id, 2.0)])

        ids = [p.id for p in listing_service.get_page(c.id)]

        assert ids == [b.id, c.id, a.id]

    def test_cursor_slice_is_cached_before_merge(self, listing_service, result_cache, rank_cache, make_movie):
        movies = [make_movie() for _ in range(3)]
        rank_cache.replace_all([(movies[2].id, 10.0)])

        listing_service.get_page(movies[0].id)

        cached = result_cache.get("movies:lastId:%d" % movies[0].id)
        assert [item["id"] for item in cached] == [movies[1].id, movies[2].id]

    def test_second_call_is_served_from_cache(self, listing_service, store, make_movie, monkeypatch):
        for _ in range(4):
            make_movie()
        first = listing_service.get_page(0)

        def unexpected(*args, **kwargs):
            raise AssertionError("store should not be queried on a cache hit")

        monkeypatch.setattr(store, "find_after", unexpected)
        second = listing_service.get_page(0)

        assert first == second

    def test_cached_slice_survives_new_stored_movies(self, listing_service, rank_cache, make_movie):
        first_batch = [make_movie() for _ in range(2)]
        rank_cache.replace_all([(first_batch[0].id, 1.0)])
        first = listing_service.get_page(0)

        make_movie()
        second = listing_service.get_page(0)

        assert [p.id for p in first] == [p.id for p in second]

    def test_empty_slice_is_not_cached(self, listing_service, result_cache, fake_catalog, catalog_payload):
        listing_service.get_page(0)
        assert result_cache.get("movies:lastId:0") is None

        fake_catalog.results = [catalog_payload(1)]
        assert [p.title for p in listing_service.get_page(0)] == ["Catalog Movie 1"]

    def test_negative_cursor_rejected(self, listing_service):
        with pytest.raises(ValueError):
            listing_service.get_page(-1)

    def test_ranked_ids_missing_from_store_are_dropped(self, listing_service, rank_cache, make_movie):
        movie = make_movie()
        rank_cache.replace_all([(9999, 5.0), (movie.id, 1.0)])

        assert [p.id for p in listing_service.get_page(0)] == [movie.id]


class TestRecordView:

    def test_view_moves_movie_into_popular_slice(self, listing_service, rank_cache, make_movie):
        movies = [make_movie(popularity=1.0) for _ in range(3)]
        rank_cache.replace_all([(movies[0].id, 1.0)])

        for _ in range(2):
            listing_service.record_view(movies[2].id, user_id=42)

        ids = [p.id for p in listing_service.get_page(movies[2].id)]
        assert ids[:2] == [movies[2].id, movies[0].id]
