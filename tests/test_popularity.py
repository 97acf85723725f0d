import pytest

from moviediary.services.popularity import DECAY_STEP, PopularityEngine
from moviediary.services.rank_cache import InMemoryRankCache


class RebuildDuringScan(InMemoryRankCache):
    """Swaps in a new ranking right after decay has read the old ids"""

    def __init__(self, replacement):
        super().__init__()
        self.replacement = replacement

    def range_all(self):
        ids = super().range_all()
        self.replace_all(self.replacement)
        return ids


@pytest.fixture
def engine(store, rank_cache):
    return PopularityEngine(store, rank_cache)


def test_each_view_adds_one(engine, rank_cache):
    for _ in range(4):
        engine.on_view(12, user_id=3)

    assert rank_cache.score(12) == pytest.approx(4.0)


def test_viewed_movie_outranks_untouched_ones(engine, rank_cache):
    rank_cache.replace_all([(1, 0.0), (2, 0.0)])
    engine.on_view(3)

    assert rank_cache.top_n(3)[0] == 3


def test_decay_once(engine, rank_cache):
    rank_cache.replace_all([(1, 5.0)])

    assert engine.decay() == 1
    assert rank_cache.score(1) == pytest.approx(5.0 - DECAY_STEP)


def test_decay_n_times_has_no_floor(engine, rank_cache):
    rank_cache.replace_all([(1, 0.2), (2, 3.0)])
    for _ in range(5):
        engine.decay()

    assert rank_cache.score(1) == pytest.approx(0.2 - 0.5)
    assert rank_cache.score(2) == pytest.approx(3.0 - 0.5)


def test_decay_on_empty_ranking_is_a_no_op(engine, rank_cache):
    assert engine.decay() == 0
    assert rank_cache.top_n(10) == []


def test_decay_does_not_restore_ids_dropped_by_concurrent_rebuild(store):
    ranks = RebuildDuringScan([(100, 5.0)])
    ranks.increment(1, 3.0)
    ranks.increment(2, 2.0)

    assert PopularityEngine(store, ranks).decay() == 0
    assert ranks.top_n(10) == [100]
    assert ranks.score(100) == pytest.approx(5.0)


def test_rebuild_orders_by_stored_popularity(engine, rank_cache, make_movie):
    a = make_movie(title="A", popularity=5.0)
    b = make_movie(title="B", popularity=3.0)
    c = make_movie(title="C", popularity=9.0)

    assert engine.rebuild() == 3
    assert rank_cache.top_n(10) == [c.id, a.id, b.id]
    assert rank_cache.score(c.id) == pytest.approx(9.0)


def test_rebuild_keeps_top_ten_and_resets_drift(engine, rank_cache, make_movie):
    movies = [make_movie(popularity=float(i)) for i in range(15)]
    rank_cache.increment(movies[0].id, 1000)

    engine.rebuild()

    top = rank_cache.top_n(20)
    assert len(top) == 10
    assert movies[0].id not in top
    assert top[0] == movies[14].id


def test_top_ids_rebuilds_cold_cache(engine, rank_cache, make_movie):
    popular = make_movie(popularity=50.0)
    make_movie(popularity=1.0)

    assert engine.top_ids(1) == [popular.id]
    assert len(rank_cache.range_all()) == 2


def test_top_ids_uses_existing_ranking_without_rebuild(engine, rank_cache, make_movie):
    make_movie(popularity=50.0)
    rank_cache.increment(999, 1)

    assert engine.top_ids() == [999]
