"""HTTP handlers for creating, deleting and listing scraping tasks."""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from subminer.httplog import RequestContext, contextualize_request
from subminer.responses import error_no_body, ok_json
from subminer.task_repo import Task
from subminer.task_service import InvalidTaskError, TaskService

logger = logging.getLogger(__name__)


def _prefix(request: Request) -> str:
    context = getattr(request.state, "request_context", None)
    if not isinstance(context, RequestContext):
        context = contextualize_request(request.method, str(request.url), request.headers)
    return context.prefix()


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        decoded = json.loads(await request.body() or b"null")
    except ValueError:
        return {}
    return decoded if isinstance(decoded, dict) else {}


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _integer(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def task_to_json(task: Task) -> dict[str, Any]:
    """A task as a JSON-ready dictionary."""
    return {
        "id": task.id,
        "subreddit_name": task.subreddit_name,
        "min_item_count": task.min_item_count,
        "interval": str(task.interval),
        "order_by": str(task.order_by),
        "posts_created_within_past": str(task.posts_created_within_past),
    }


class TaskHandlers:
    """Serves ``POST /task``, ``DELETE /task`` and ``GET /tasks``."""

    def __init__(self, service: TaskService) -> None:
        self._service = service

    async def create(self, request: Request) -> Response:
        prefix = _prefix(request)
        form = await _json_object(request)
        try:
            await run_in_threadpool(
                self._service.create,
                _string(form.get("subreddit_name")),
                _integer(form.get("min_item_count")),
                _string(form.get("interval")),
                _string(form.get("order_by")),
                _string(form.get("posts_created_within_past")),
            )
        except (InvalidTaskError, sqlite3.Error) as exc:
            logger.warning("%s error=%s", prefix, exc)
            return error_no_body(400, exc)
        return ok_json({})

    async def delete(self, request: Request) -> Response:
        prefix = _prefix(request)
        form = await _json_object(request)
        try:
            await run_in_threadpool(self._service.delete, _integer(form.get("id")))
        except sqlite3.Error as exc:
            logger.warning("%s error=%s", prefix, exc)
            return error_no_body(400, exc)
        return ok_json({})

    async def list(self, request: Request) -> Response:
        prefix = _prefix(request)
        try:
            tasks = await run_in_threadpool(self._service.tasks)
        except sqlite3.Error as exc:
            logger.warning("%s error=%s", prefix, exc)
            return error_no_body(400, exc)
        return ok_json({"tasks": [task_to_json(task) for task in tasks] or None})