"""Validation and management of scraping tasks."""

from __future__ import annotations

from subminer.task_repo import Interval, Task, TaskRepo


class InvalidTaskError(ValueError):
    """Raised when a task request has missing or unsupported parameters."""


class TaskService:
    """Creates, removes and lists scraping tasks."""

    def __init__(self, repo: TaskRepo) -> None:
        self._repo = repo

    def create(self, name: str, count: int, interval, order_by, past) -> int:
        """Validate and store a task; return its id."""
        interval = str(interval or "")
        order_by = str(order_by or "")
        past = str(past or "")
        if not name or count <= 0 or not interval or not order_by or not past:
            raise InvalidTaskError(
                f"some invalid params, name={name}, count={count}, interval={interval}, "
                f"by={order_by}, past {past}"
            )
        if interval != Interval.HOUR.value:
            raise InvalidTaskError(
                f"invalid params, interval requested at {interval} "
                f"but only support {Interval.HOUR.value}"
            )
        return self._repo.create(name, count, interval, order_by, past)

    def delete(self, task_id: int) -> None:
        self._repo.delete(task_id)

    def tasks_by_interval(self, interval) -> list[Task]:
        return self._repo.tasks_by_interval(interval)

    def tasks(self) -> list[Task]:
        return self._repo.tasks()