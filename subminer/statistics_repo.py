"""Storage of scraped post statistics."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum

logger = logging.getLogger(__name__)

MAX_RANK = 20

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


class Granularity(IntEnum):
    """Time resolution of a statistics series."""

    MINUTE = 1
    QUARTER_HOUR = 2
    HOUR = 3
    DAILY = 4

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PostForm:
    """A post observation ready to be stored."""

    title: str
    subreddit_name: str
    polled_time: datetime
    polled_time_rounded_minute: datetime
    comment_count: int | None
    score: int | None
    rank: int
    rank_order_type: str
    rank_order_for_created_within_past: str
    subreddit_id: str
    data_ks_id: str
    perma_link_path: str
    author_id: str
    author_name: str
    post_created_at: datetime | None = None


@dataclass(frozen=True)
class StoredPost:
    """A post observation as read back from storage."""

    id: int
    title: str
    perma_link_path: str
    data_ks_id: str
    score: int | None
    subreddit_id: str
    comment_count: int | None
    subreddit_name: str
    polled_time: datetime | None
    author_id: str
    author_name: str
    polled_time_rounded_minute: datetime
    rank: int
    rank_order_type: str
    rank_order_for_created_within_past: str


def _to_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime(_TIME_FORMAT)


def _from_db_time(text: str | None) -> datetime | None:
    if text is None:
        return None
    return datetime.strptime(text, _TIME_FORMAT).replace(tzinfo=timezone.utc)


_COLUMNS = (
    "id, title, perma_link_path, data_ks_id, score, subreddit_id, "
    "comment_count, subreddit_name, polled_time, author_id, author_name, "
    "polled_time_rounded_min, rank, rank_order_type, rank_order_created_within_past"
)


class StatisticsRepo:
    """Post statistics kept in a SQL table reached through a DB-API connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def ensure_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS post_statistics ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "title TEXT NOT NULL, "
                "perma_link_path TEXT NOT NULL, "
                "data_ks_id TEXT NOT NULL, "
                "score INTEGER, "
                "subreddit_id TEXT NOT NULL, "
                "comment_count INTEGER, "
                "subreddit_name TEXT NOT NULL, "
                "polled_time TEXT, "
                "author_id TEXT NOT NULL, "
                "author_name TEXT NOT NULL, "
                "polled_time_rounded_min TEXT NOT NULL, "
                "rank INTEGER NOT NULL, "
                "rank_order_type TEXT NOT NULL, "
                "rank_order_created_within_past TEXT NOT NULL, "
                "post_created_at TEXT)"
            )

    def insert(self, post: PostForm) -> int:
        """Store one observation and return its id."""
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO post_statistics(title, perma_link_path, data_ks_id, score, "
                "subreddit_id, comment_count, subreddit_name, polled_time, author_id, "
                "author_name, polled_time_rounded_min, rank, rank_order_type, "
                "rank_order_created_within_past, post_created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    post.title,
                    post.perma_link_path,
                    post.data_ks_id,
                    post.score,
                    post.subreddit_id,
                    post.comment_count,
                    post.subreddit_name,
                    _to_db_time(post.polled_time),
                    post.author_id,
                    post.author_name,
                    _to_db_time(post.polled_time_rounded_minute),
                    post.rank,
                    str(post.rank_order_type),
                    str(post.rank_order_for_created_within_past),
                    _to_db_time(post.post_created_at),
                ),
            )
        return cursor.lastrowid

    def insert_many(self, posts: Iterable[PostForm]) -> int:
        """Store every observation, logging failures; return how many were stored."""
        posts = list(posts)
        logger.info("inserting %d posts", len(posts))
        stored = 0
        for post in posts:
            try:
                self.insert(post)
            except sqlite3.Error as exc:
                logger.error("insert error %r post %r", exc, post)
            else:
                stored += 1
        return stored

    def stats(
        self,
        name: str,
        order_type,
        from_time: datetime | None,
        to_time: datetime | None,
        past,
        granularity: Granularity | int,
    ) -> list[StoredPost]:
        """Top-ranked observations taken on the hour, strictly within the time range."""
        conditions = [
            "rank <= ?",
            "subreddit_name = ?",
            "rank_order_type = ?",
            "rank_order_created_within_past = ?",
            "substr(polled_time_rounded_min, 15, 2) = '00'",
        ]
        params: list[object] = [MAX_RANK, name, str(order_type), str(past)]
        if from_time is not None:
            conditions.append("? < polled_time_rounded_min")
            params.append(_to_db_time(from_time))
        if to_time is not None:
            conditions.append("polled_time_rounded_min < ?")
            params.append(_to_db_time(to_time))

        rows = self._conn.execute(
            f"SELECT {_COLUMNS} FROM post_statistics WHERE {' AND '.join(conditions)} ORDER BY id",
            params,
        )
        return [
            StoredPost(
                id=row[0],
                title=row[1],
                perma_link_path=row[2],
                data_ks_id=row[3],
                score=row[4],
                subreddit_id=row[5],
                comment_count=row[6],
                subreddit_name=row[7],
                polled_time=_from_db_time(row[8]),
                author_id=row[9],
                author_name=row[10],
                polled_time_rounded_minute=_from_db_time(row[11]),
                rank=row[12],
                rank_order_type=row[13],
                rank_order_for_created_within_past=row[14],
            )
            for row in rows
        ]