import sqlite3

import pytest
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.testclient import TestClient

from subminer.task_api import TaskHandlers, task_to_json
from subminer.task_repo import Task, TaskRepo
from subminer.task_service import TaskService

VALID = {
    "subreddit_name": "memes",
    "min_item_count": 20,
    "interval": "hour",
    "order_by": "top",
    "posts_created_within_past": "day",
}


@pytest.fixture
def repo():
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    repository = TaskRepo(conn)
    repository.ensure_schema()
    yield repository
    conn.close()


@pytest.fixture
def client(repo):
    handlers = TaskHandlers(TaskService(repo))
    app = Starlette(
        routes=[
            Route("/task", handlers.create, methods=["POST"]),
            Route("/task", handlers.delete, methods=["DELETE"]),
            Route("/tasks", handlers.list, methods=["GET"]),
        ]
    )
    with TestClient(app) as test_client:
        yield test_client


def test_create_then_list(client):
    created = client.post("/task", json=VALID)
    assert created.status_code == 200
    assert created.json() == {"data": {}, "error": None}

    listed = client.get("/tasks").json()
    tasks = listed["data"]["tasks"]
    assert len(tasks) == 1
    task = tasks[0]
    assert {key: task[key] for key in VALID} == VALID
    assert task["id"] >= 1


def test_list_empty_is_null(client):
    response = client.get("/tasks")
    assert response.status_code == 200
    assert response.json() == {"data": {"tasks": None}, "error": None}


def test_create_rejects_other_interval(client, repo):
    response = client.post("/task", json={**VALID, "interval": "day"})
    assert response.status_code == 400
    assert response.json()["error"] == (
        "invalid params, interval requested at day but only support hour"
    )
    assert repo.tasks() == []


def test_create_rejects_missing_fields(client):
    response = client.post("/task", json={**VALID, "min_item_count": 0})
    assert response.status_code == 400
    assert response.json()["error"].startswith("some invalid params")


def test_create_with_invalid_json(client, repo):
    response = client.post(
        "/task", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    assert repo.tasks() == []


def test_delete_removes_task(client, repo):
    task_id = repo.create("memes", 5, "hour", "top", "day")
    repo.create("pics", 5, "hour", "top", "week")
    response = client.request("DELETE", "/task", json={"id": task_id})
    assert response.status_code == 200
    assert response.json() == {"data": {}, "error": None}
    assert [task.subreddit_name for task in repo.tasks()] == ["pics"]


def test_task_to_json():
    task = Task(
        id=7,
        subreddit_name="memes",
        min_item_count=20,
        interval="hour",
        order_by="top",
        posts_created_within_past="day",
    )
    assert task_to_json(task) == {"id": 7, **VALID}