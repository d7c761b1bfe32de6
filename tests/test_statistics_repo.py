import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from subminer.statistics_repo import Granularity, PostForm, StatisticsRepo

UTC = timezone.utc
T0 = datetime(2025, 1, 1, 10, 0, tzinfo=UTC)


@pytest.fixture
def repo():
    conn = sqlite3.connect(":memory:")
    repository = StatisticsRepo(conn)
    repository.ensure_schema()
    yield repository
    conn.close()


def make_form(**overrides):
    values = dict(
        title="A title",
        subreddit_name="memes",
        polled_time=T0 + timedelta(seconds=12),
        polled_time_rounded_minute=T0,
        comment_count=5,
        score=42,
        rank=1,
        rank_order_type="top",
        rank_order_for_created_within_past="day",
        subreddit_id="t5_abc",
        data_ks_id="t3_one",
        perma_link_path="/r/memes/comments/one/",
        author_id="t2_author",
        author_name="someone",
        post_created_at=T0 - timedelta(hours=3),
    )
    values.update(overrides)
    return PostForm(**values)


def query(repo, **overrides):
    args = dict(
        name="memes",
        order_type="top",
        from_time=T0 - timedelta(hours=1),
        to_time=T0 + timedelta(hours=5),
        past="day",
        granularity=Granularity.HOUR,
    )
    args.update(overrides)
    return repo.stats(**args)


def test_granularity_values_follow_source():
    assert [g.value for g in Granularity] == [1, 2, 3, 4]
    assert Granularity(3) is Granularity.HOUR


def test_insert_and_read_back(repo):
    form = make_form()
    new_id = repo.insert(form)
    [stored] = query(repo)
    assert stored.id == new_id
    assert stored.title == form.title
    assert stored.data_ks_id == form.data_ks_id
    assert stored.score == form.score
    assert stored.comment_count == form.comment_count
    assert stored.polled_time == form.polled_time
    assert stored.polled_time_rounded_minute == form.polled_time_rounded_minute
    assert stored.rank == form.rank
    assert stored.rank_order_type == "top"
    assert stored.rank_order_for_created_within_past == "day"
    assert stored.author_name == form.author_name


def test_missing_counts_round_trip_as_none(repo):
    repo.insert(make_form(score=None, comment_count=None))
    [stored] = query(repo)
    assert stored.score is None
    assert stored.comment_count is None


def test_naive_times_are_taken_as_utc(repo):
    naive = T0.replace(tzinfo=None)
    repo.insert(make_form(polled_time=naive, polled_time_rounded_minute=naive))
    [stored] = query(repo)
    assert stored.polled_time_rounded_minute == T0


def test_filters_rank_above_twenty(repo):
    repo.insert(make_form(rank=20, data_ks_id="keep"))
    repo.insert(make_form(rank=21, data_ks_id="drop"))
    assert [p.data_ks_id for p in query(repo)] == ["keep"]


def test_filters_observations_not_on_the_hour(repo):
    repo.insert(make_form(data_ks_id="keep"))
    repo.insert(
        make_form(data_ks_id="drop", polled_time_rounded_minute=T0 + timedelta(minutes=30))
    )
    assert [p.data_ks_id for p in query(repo)] == ["keep"]


def test_filters_other_listings(repo):
    repo.insert(make_form(data_ks_id="keep"))
    repo.insert(make_form(data_ks_id="other-sub", subreddit_name="pics"))
    repo.insert(make_form(data_ks_id="other-order", rank_order_type="hot"))
    repo.insert(make_form(data_ks_id="other-past", rank_order_for_created_within_past="week"))
    assert [p.data_ks_id for p in query(repo)] == ["keep"]


def test_time_bounds_are_exclusive(repo):
    repo.insert(make_form(data_ks_id="at-start", polled_time_rounded_minute=T0))
    repo.insert(
        make_form(data_ks_id="inside", polled_time_rounded_minute=T0 + timedelta(hours=1))
    )
    repo.insert(
        make_form(data_ks_id="at-end", polled_time_rounded_minute=T0 + timedelta(hours=2))
    )
    result = query(repo, from_time=T0, to_time=T0 + timedelta(hours=2))
    assert [p.data_ks_id for p in result] == ["inside"]


def test_insert_many_stores_all(repo):
    forms = [make_form(data_ks_id=f"t3_{n}", rank=n) for n in range(1, 6)]
    assert repo.insert_many(forms) == len(forms)
    assert sorted(p.data_ks_id for p in query(repo)) == sorted(f.data_ks_id for f in forms)


def test_insert_many_logs_and_skips_failures():
    conn = sqlite3.connect(":memory:")
    repository = StatisticsRepo(conn)
    assert repository.insert_many([make_form()]) == 0
    conn.close()