"""HTTP handler serving stored post statistics as JSON or CSV."""

from __future__ import annotations

import logging
import re
import sqlite3
from datetime import datetime, timezone

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import Response

from subminer.httplog import RequestContext, contextualize_request
from subminer.responses import csv_response, error_no_body, ok_json
from subminer.statistics_service import Post, StatisticsError, StatisticsService

logger = logging.getLogger(__name__)

JSON_TYPE = "application/json"
CSV_TYPE = "text/csv"

CSV_HEADER = [
    "row_position",
    "polled_time",
    "polled_time_rounded_min",
    "rank",
    "rank_order_type",
    "rank_order_created_within_past",
    "data_ks_id",
    "title",
    "perma_link_path",
    "comment_count",
    "score",
    "subreddit_id",
    "subreddit_name",
    "author_id",
    "author_name",
]

_QUERY_TIME = re.compile(r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d{3})Z")
_INTEGER = re.compile(r"[+-]?[0-9]+")
_FILENAME_TIME = "%Y-%m-%d_%H-%M-%S"


def _prefix(request: Request) -> str:
    context = getattr(request.state, "request_context", None)
    if not isinstance(context, RequestContext):
        context = contextualize_request(request.method, str(request.url), request.headers)
    return context.prefix()


def _parse_query_time(text: str) -> datetime:
    match = _QUERY_TIME.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid time {text!r}, expected YYYY-MM-DDTHH:MM:SS.mmmZ")
    year, month, day, hour, minute, second, millis = (int(part) for part in match.groups())
    try:
        return datetime(
            year, month, day, hour, minute, second, millis * 1000, tzinfo=timezone.utc
        )
    except ValueError as exc:
        raise ValueError(f"invalid time {text!r}: {exc}") from exc


def _atoi(text: str) -> int:
    return int(text) if _INTEGER.fullmatch(text) else 0


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _fraction(moment: datetime) -> str:
    digits = f"{moment.microsecond:06d}".rstrip("0")
    return f".{digits}" if digits else ""


def _rfc3339(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    moment = _as_utc(moment)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + _fraction(moment) + "Z"


def _utc_text(moment: datetime | None) -> str:
    if moment is None:
        return ""
    moment = _as_utc(moment)
    return moment.strftime("%Y-%m-%d %H:%M:%S") + _fraction(moment) + " +0000 UTC"


def _optional_int(value: int | None) -> str:
    return "" if value is None else str(value)


def to_csv_rows(posts: list[Post]) -> list[list[str]]:
    """Header row followed by one row per post, numbered from zero."""
    rows = [list(CSV_HEADER)]
    for position, post in enumerate(posts):
        rows.append(
            [
                str(position),
                _utc_text(post.polled_time),
                _utc_text(post.polled_time_rounded_minute),
                _optional_int(post.rank),
                str(post.rank_order_type),
                str(post.rank_order_for_created_within_past),
                post.data_ks_id,
                post.title,
                post.perma_link_path,
                _optional_int(post.comment_count),
                _optional_int(post.score),
                post.subreddit_id,
                post.subreddit_name,
                post.author_id,
                post.author_name,
            ]
        )
    return rows


def to_json_posts(posts: list[Post]) -> list[dict]:
    """Posts as JSON-ready dictionaries."""
    return [
        {
            "title": post.title,
            "perma_link_path": post.perma_link_path,
            "data_ks_id": post.data_ks_id,
            "score": post.score,
            "subreddit_id": post.subreddit_id,
            "comment_count": post.comment_count,
            "subreddit_name": post.subreddit_name,
            "polled_time": _rfc3339(post.polled_time),
            "author_id": post.author_id,
            "author_name": post.author_name,
            "polled_time_rounded_min": _rfc3339(post.polled_time_rounded_minute),
            "rank": post.rank,
            "rank_order_type": str(post.rank_order_type),
            "rank_order_created_within_past": str(post.rank_order_for_created_within_past),
            "is_synthetic": post.is_synthetic,
        }
        for post in posts
    ]


class StatisticsHandlers:
    """Serves ``GET /statistics``."""

    def __init__(self, service: StatisticsService) -> None:
        self._service = service

    async def get(self, request: Request) -> Response:
        prefix = _prefix(request)
        query = request.query_params
        name = query.get("subreddit_name", "")
        order_type = query.get("rank_order_type", "")
        past = query.get("rank_order_created_within_past", "")
        granularity_text = query.get("granularity", "")
        backfill = query.get("backfill", "") == "true"

        content_type = request.headers.get("accept", "")
        if content_type not in (JSON_TYPE, CSV_TYPE):
            return error_no_body(415, f"content type {content_type} not supported")

        try:
            from_time = _parse_query_time(query.get("from_time", ""))
            to_time = _parse_query_time(query.get("to_time", ""))
        except ValueError as exc:
            return error_no_body(400, exc)

        if "" in (name, order_type, past, granularity_text):
            message = (
                f"some field is empty. subreddit_name {name}, rank_order_type {order_type}, "
                f"rank_order_created_within_past {past}, granularity {granularity_text}"
            )
            logger.warning("%s error=%s", prefix, message)
            return error_no_body(400, message)

        try:
            posts = await run_in_threadpool(
                self._service.stats,
                name,
                order_type,
                past,
                _atoi(granularity_text),
                from_time,
                to_time,
                backfill,
            )
        except (StatisticsError, sqlite3.Error) as exc:
            logger.warning("%s error=%s", prefix, exc)
            return error_no_body(400, exc)

        if content_type == JSON_TYPE:
            return ok_json({"posts": to_json_posts(posts) or None})

        filename = (
            f"{name}_{order_type}_{past}_FROM_{from_time.strftime(_FILENAME_TIME)}"
            f"_TO_{to_time.strftime(_FILENAME_TIME)}"
        )
        return csv_response(filename, to_csv_rows(posts))