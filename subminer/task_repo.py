"""Storage of scraping tasks."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum


class Interval(str, Enum):
    HOUR = "hour"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Task:
    """A periodic request to scrape one subreddit listing."""

    id: int
    subreddit_name: str
    min_item_count: int
    interval: str
    order_by: str
    posts_created_within_past: str


_SELECT = (
    "SELECT id, subreddit_name, min_item_count, interval, order_by, "
    "posts_created_within_past FROM tasks"
)


class TaskRepo:
    """Tasks kept in a SQL table reached through a DB-API connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def ensure_schema(self) -> None:
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS tasks ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "subreddit_name TEXT NOT NULL, "
                "min_item_count INTEGER NOT NULL, "
                "interval TEXT NOT NULL, "
                "order_by TEXT NOT NULL, "
                "posts_created_within_past TEXT NOT NULL)"
            )

    def create(self, subreddit_name, item_count, interval, order_by, created_within) -> int:
        """Insert a task and return its id."""
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO tasks(subreddit_name, min_item_count, interval, order_by, "
                "posts_created_within_past) VALUES (?, ?, ?, ?, ?)",
                (subreddit_name, item_count, str(interval), str(order_by), str(created_within)),
            )
        return cursor.lastrowid

    def delete(self, task_id: int) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

    def tasks_by_interval(self, interval) -> list[Task]:
        rows = self._conn.execute(f"{_SELECT} WHERE interval = ? ORDER BY id", (str(interval),))
        return [Task(*row) for row in rows]

    def tasks(self) -> list[Task]:
        rows = self._conn.execute(f"{_SELECT} ORDER BY id")
        return [Task(*row) for row in rows]