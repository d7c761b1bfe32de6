"""Clients of the statistics server used by the chat bot, and their helpers."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.message import Message
from typing import Any
from urllib.parse import urlencode

import httpx

from subminer.reddit_miner import Post as MinedPost

logger = logging.getLogger(__name__)

JSON_TYPE = "application/json"
CSV_TYPE = "text/csv"

_TIME = re.compile(r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})")

CSV_HEADER = [
    "title",
    "perma_link_path",
    "data_ks_id",
    "subreddit_id",
    "subreddit_prefix_name",
    "author_id",
    "author_name",
]


class ClientError(Exception):
    """Raised when the statistics server cannot be reached or reports an error."""


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _int(value: Any) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def _parse_time(value: Any) -> datetime | None:
    if not isinstance(value, str):
        return None
    match = _TIME.fullmatch(value)
    if match is None:
        return None
    base, fraction, zone = match.groups()
    micros = (fraction or "").ljust(6, "0")[:6]
    zone = "+00:00" if zone == "Z" else zone
    return datetime.fromisoformat(f"{base}.{micros}{zone}")


def _query_time(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{moment.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class RemoteTask:
    """A scraping task as listed by the server."""

    id: int
    subreddit_name: str
    min_item_count: int
    interval: str
    order_by: str
    posts_created_within_past: str

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> RemoteTask:
        return cls(
            id=_int(data.get("id")),
            subreddit_name=_string(data.get("subreddit_name")),
            min_item_count=_int(data.get("min_item_count")),
            interval=_string(data.get("interval")),
            order_by=_string(data.get("order_by")),
            posts_created_within_past=_string(data.get("posts_created_within_past")),
        )


@dataclass(frozen=True)
class RemotePost:
    """A statistics point as returned by the server."""

    title: str
    perma_link_path: str
    data_ks_id: str
    score: int
    subreddit_id: str
    comment_count: int
    subreddit_name: str
    polled_time: datetime | None
    author_id: str
    author_name: str
    polled_time_rounded_minute: datetime | None
    rank: int
    rank_order_type: str
    rank_order_for_created_within_past: str
    id: int

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> RemotePost:
        return cls(
            title=_string(data.get("title")),
            perma_link_path=_string(data.get("perma_link_path")),
            data_ks_id=_string(data.get("data_ks_id")),
            score=_int(data.get("score")),
            subreddit_id=_string(data.get("subreddit_id")),
            comment_count=_int(data.get("comment_count")),
            subreddit_name=_string(data.get("subreddit_name")),
            polled_time=_parse_time(data.get("polled_time")),
            author_id=_string(data.get("author_id")),
            author_name=_string(data.get("author_name")),
            polled_time_rounded_minute=_parse_time(data.get("polled_time_rounded_min")),
            rank=_int(data.get("rank")),
            rank_order_type=_string(data.get("rank_order_type")),
            rank_order_for_created_within_past=_string(
                data.get("rank_order_created_within_past")
            ),
            id=_int(data.get("id")),
        )


def extract_filename(content_disposition: str) -> str:
    """The file name of a Content-Disposition value, or an empty string."""
    if not content_disposition:
        return ""
    message = Message()
    try:
        message["Content-Disposition"] = content_disposition
        filename = message.get_filename()
    except (ValueError, TypeError) as exc:
        logger.warning("Error: %s %s", exc, content_disposition)
        return ""
    return filename or ""


def format_table(rows: list[list[str]]) -> str:
    """A plain-text two-column table of post names and ranks."""
    lines = ["Post Name         | Rank\n", "------------------|-----\n"]
    lines.extend(f"{row[0]:<18}| {row[1]}\n" for row in rows)
    return "".join(lines)


def posts_to_csv_rows(posts: list[MinedPost]) -> list[list[str]]:
    """Header row followed by one row per mined post."""
    rows = [list(CSV_HEADER)]
    rows.extend(
        [
            post.title,
            post.perma_link_path,
            post.data_ks_id,
            post.subreddit_id,
            post.subreddit_prefixed_name,
            post.author_id,
            post.author_name,
        ]
        for post in posts
    )
    return rows


def _get(client: httpx.Client | None, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
    try:
        if client is None:
            with httpx.Client(timeout=60.0) as own_client:
                return own_client.get(url, headers=headers)
        return client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        raise ClientError(str(exc)) from exc


def _decode(response: httpx.Response) -> dict[str, Any]:
    logger.debug("Status: %s Body: %s", response.status_code, response.text)
    try:
        body = json.loads(response.content or b"null")
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _data(body: dict[str, Any]) -> dict[str, Any]:
    error = body.get("error")
    if isinstance(error, str):
        raise ClientError(error)
    data = body.get("data")
    return data if isinstance(data, dict) else {}


class StatsClient:
    """Fetches statistics from the server."""

    def __init__(self, host: str, client: httpx.Client | None = None) -> None:
        self.host = host
        self._client = client

    def get_json(self, subreddit_name: str, order: str, past: str, granularity: int) -> list[RemotePost]:
        params = {
            "subreddit_name": subreddit_name,
            "rank_order_type": order,
            "rank_order_created_within_past": past,
            "granularity": str(granularity),
        }
        url = f"{self.host}/statistics?{urlencode(sorted(params.items()))}"
        data = _data(_decode(_get(self._client, url, {"Accept": JSON_TYPE})))
        posts = data.get("posts") or []
        return [RemotePost.from_json(post) for post in posts if isinstance(post, dict)]

    def get_csv(
        self,
        subreddit_name: str,
        order: str,
        past: str,
        granularity: int,
        from_time: datetime,
        to_time: datetime,
    ) -> tuple[bytes, str]:
        """Download a CSV report; return its bytes and the file name the server suggests."""
        params = {
            "subreddit_name": subreddit_name,
            "rank_order_type": order,
            "rank_order_created_within_past": past,
            "granularity": str(granularity),
            "to_time": _query_time(to_time),
            "from_time": _query_time(from_time),
        }
        url = f"{self.host}/statistics?{urlencode(sorted(params.items()))}"
        response = _get(self._client, url, {"Accept": CSV_TYPE})
        if response.status_code != 200:
            raise ClientError(f"{response.status_code} {response.reason_phrase}")
        return response.content, extract_filename(
            response.headers.get("content-disposition", "")
        )


class TaskClient:
    """Lists the scraping tasks known to the server."""

    def __init__(self, host: str, client: httpx.Client | None = None) -> None:
        self.host = host
        self._client = client

    def get_list(self) -> list[RemoteTask]:
        data = _data(_decode(_get(self._client, f"{self.host}/tasks")))
        tasks = data.get("tasks") or []
        return [RemoteTask.from_json(task) for task in tasks if isinstance(task, dict)]