import csv
import io
import sqlite3
from datetime import datetime, timezone

import pytest
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.testclient import TestClient

from subminer.statistics_api import (
    CSV_HEADER,
    StatisticsHandlers,
    to_csv_rows,
    to_json_posts,
)
from subminer.statistics_repo import PostForm, StatisticsRepo
from subminer.statistics_service import Post, StatisticsService

UTC = timezone.utc

PARAMS = {
    "subreddit_name": "memes",
    "rank_order_type": "top",
    "rank_order_created_within_past": "day",
    "granularity": "3",
    "from_time": "2025-01-01T00:00:00.000Z",
    "to_time": "2025-01-02T00:00:00.000Z",
}

JSON_HEADERS = {"Accept": "application/json"}


def _form(ks_id, rank, hour):
    return PostForm(
        title=f"title {ks_id}",
        subreddit_name="memes",
        polled_time=datetime(2025, 1, 1, hour, 0, 5, tzinfo=UTC),
        polled_time_rounded_minute=datetime(2025, 1, 1, hour, tzinfo=UTC),
        comment_count=3,
        score=10,
        rank=rank,
        rank_order_type="top",
        rank_order_for_created_within_past="day",
        subreddit_id="t5_sub",
        data_ks_id=ks_id,
        perma_link_path=f"/r/memes/comments/{ks_id}/",
        author_id="t2_author",
        author_name="alice",
    )


@pytest.fixture
def repo():
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    repository = StatisticsRepo(conn)
    repository.ensure_schema()
    yield repository
    conn.close()


@pytest.fixture
def client(repo):
    service = StatisticsService(repo, miner=lambda *args: [])
    handlers = StatisticsHandlers(service)
    app = Starlette(routes=[Route("/statistics", handlers.get, methods=["GET"])])
    with TestClient(app) as test_client:
        yield test_client


def test_json_posts_ordered_by_rank(repo, client):
    repo.insert(_form("b", 2, 10))
    repo.insert(_form("a", 1, 10))
    response = client.get("/statistics", params=PARAMS, headers=JSON_HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["error"] is None
    posts = body["data"]["posts"]
    assert [post["data_ks_id"] for post in posts] == ["a", "b"]
    assert [post["rank"] for post in posts] == [1, 2]
    assert all(post["is_synthetic"] is False for post in posts)


def test_json_without_results_has_null_posts(client):
    response = client.get("/statistics", params=PARAMS, headers=JSON_HEADERS)
    assert response.status_code == 200
    assert response.json() == {"data": {"posts": None}, "error": None}


def test_backfill_adds_synthetic_points(repo, client):
    repo.insert(_form("a", 1, 10))
    repo.insert(_form("b", 1, 11))
    response = client.get(
        "/statistics", params={**PARAMS, "backfill": "true"}, headers=JSON_HEADERS
    )
    posts = response.json()["data"]["posts"]
    assert len(posts) == 4
    synthetic = [post for post in posts if post["is_synthetic"]]
    assert len(synthetic) == 2
    assert all(post["rank"] is None for post in synthetic)


def test_csv_download(repo, client):
    repo.insert(_form("a", 1, 10))
    response = client.get("/statistics", params=PARAMS, headers={"Accept": "text/csv"})
    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=memes_top_day_FROM_2025-01-01_00-00-00_TO_2025-01-02_00-00-00.csv"
    )
    rows = list(csv.reader(io.StringIO(response.text)))
    assert rows[0] == CSV_HEADER
    assert rows[1][0] == "0"
    assert rows[1][6] == "a"
    assert rows[1][3] == "1"


def test_unsupported_accept(client):
    response = client.get("/statistics", params=PARAMS, headers={"Accept": "text/html"})
    assert response.status_code == 415
    assert response.json()["error"] == "content type text/html not supported"


def test_bad_from_time(client):
    response = client.get(
        "/statistics", params={**PARAMS, "from_time": "yesterday"}, headers=JSON_HEADERS
    )
    assert response.status_code == 400
    assert response.json()["data"] is None


def test_missing_field(client):
    params = {**PARAMS, "subreddit_name": ""}
    response = client.get("/statistics", params=params, headers=JSON_HEADERS)
    assert response.status_code == 400
    assert response.json()["error"].startswith("some field is empty.")


def test_unsupported_order(client):
    response = client.get(
        "/statistics", params={**PARAMS, "rank_order_type": "hot"}, headers=JSON_HEADERS
    )
    assert response.status_code == 400
    assert response.json()["error"] == "order algo type hot not supported"


def test_non_numeric_granularity(client):
    response = client.get(
        "/statistics", params={**PARAMS, "granularity": "x"}, headers=JSON_HEADERS
    )
    assert response.status_code == 400
    assert response.json()["error"] == "granularity type not supported. =0"


def _service_post(rank):
    return Post(
        title="title a",
        perma_link_path="/r/memes/comments/a/",
        data_ks_id="a",
        subreddit_id="t5_sub",
        subreddit_name="memes",
        author_id="t2_author",
        author_name="alice",
        polled_time=datetime(2025, 1, 1, 10, 0, 5, tzinfo=UTC),
        polled_time_rounded_minute=datetime(2025, 1, 1, 10, tzinfo=UTC),
        score=None,
        comment_count=None,
        rank_order_type="top",
        rank_order_for_created_within_past="day",
        rank=rank,
    )


def test_to_csv_rows_blank_for_missing_numbers():
    rows = to_csv_rows([_service_post(None), _service_post(4)])
    assert len(rows) == 3
    assert rows[1][3] == ""
    assert rows[1][9] == "" and rows[1][10] == ""
    assert rows[2][3] == "4"
    assert rows[2][0] == "1"
    assert rows[1][1] == "2025-01-01 10:00:05 +0000 UTC"


def test_to_json_posts_fields():
    (encoded,) = to_json_posts([_service_post(2)])
    assert encoded["rank"] == 2
    assert encoded["polled_time_rounded_min"] == "2025-01-01T10:00:00Z"
    assert encoded["rank_order_created_within_past"] == "day"
    assert encoded["score"] is None