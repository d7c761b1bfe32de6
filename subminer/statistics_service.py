"""Scraping of listings into statistics and cleansing of the stored series."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from subminer import reddit_miner
from subminer.reddit_miner import CreatedWithinPast, OrderByAlgo
from subminer.statistics_repo import Granularity, PostForm, StatisticsRepo, StoredPost

logger = logging.getLogger(__name__)

_CREATED_LAYOUT = "%Y-%m-%dT%H:%M:%S.%f%z"

GRANULARITY_TO_DURATION = {Granularity.HOUR: timedelta(hours=1)}

SUPPORTED_PAST = (CreatedWithinPast.DAY, CreatedWithinPast.WEEK, CreatedWithinPast.MONTH)

Miner = Callable[[str, object, object], Iterable[reddit_miner.Post]]


class StatisticsError(ValueError):
    """Raised when a statistics request cannot be served."""


@dataclass
class Post:
    """One point of a post's ranking series, possibly synthesised by backfill."""

    title: str
    perma_link_path: str
    data_ks_id: str
    subreddit_id: str
    subreddit_name: str
    author_id: str
    author_name: str
    polled_time: datetime | None
    polled_time_rounded_minute: datetime
    score: int | None
    comment_count: int | None
    rank_order_type: str
    rank_order_for_created_within_past: str
    rank: int | None
    is_synthetic: bool = False


def parse_created_timestamp(value: str) -> datetime | None:
    """Parse a listing's creation time such as ``2025-05-30T12:34:56.789000+0000``."""
    try:
        return datetime.strptime(value, _CREATED_LAYOUT)
    except ValueError:
        return None


def _from_stored(post: StoredPost) -> Post:
    return Post(
        title=post.title,
        perma_link_path=post.perma_link_path,
        data_ks_id=post.data_ks_id,
        subreddit_id=post.subreddit_id,
        subreddit_name=post.subreddit_name,
        author_id=post.author_id,
        author_name=post.author_name,
        polled_time=post.polled_time,
        polled_time_rounded_minute=post.polled_time_rounded_minute,
        score=post.score,
        comment_count=post.comment_count,
        rank_order_type=post.rank_order_type,
        rank_order_for_created_within_past=post.rank_order_for_created_within_past,
        rank=post.rank,
    )


def _sort_key(post: Post):
    return (post.polled_time_rounded_minute, post.rank is None, post.rank or 0)


class StatisticsService:
    """Collects listing snapshots and serves them back as time series."""

    def __init__(self, repo: StatisticsRepo, miner: Miner | None = None) -> None:
        self._repo = repo
        self._miner = miner or reddit_miner.subreddit_posts

    def scrape(self, subreddit_name: str, created_within_past, order_by) -> list[PostForm]:
        """Take one snapshot of a listing and store it; return what was stored."""
        now = datetime.now(timezone.utc)
        rounded = now.replace(second=0, microsecond=0)
        forms = [
            PostForm(
                title=post.title,
                perma_link_path=post.perma_link_path,
                data_ks_id=post.data_ks_id,
                score=post.score,
                subreddit_id=post.subreddit_id,
                comment_count=post.comment_count,
                subreddit_name=post.subreddit_prefixed_name.replace("r/", ""),
                polled_time=now,
                author_id=post.author_id,
                author_name=post.author_name,
                polled_time_rounded_minute=rounded,
                rank=post.rank,
                rank_order_type=str(post.rank_order_type),
                rank_order_for_created_within_past=str(post.rank_order_for_created_within_past),
                post_created_at=parse_created_timestamp(post.created_timestamp),
            )
            for post in self._miner(subreddit_name, created_within_past, order_by)
        ]
        self._repo.insert_many(forms)
        return forms

    def stats(
        self,
        name: str,
        order_type,
        past,
        granularity,
        from_time: datetime | None = None,
        to_time: datetime | None = None,
        backfill: bool = False,
    ) -> list[Post]:
        """Return the series ordered by time then rank, optionally backfilled."""
        if order_type != OrderByAlgo.TOP:
            raise StatisticsError(f"order algo type {order_type} not supported")
        if past not in SUPPORTED_PAST:
            raise StatisticsError(f"past day {past} not supported")
        if not name:
            raise StatisticsError("empty subreddit name")
        if granularity != Granularity.HOUR:
            shown = getattr(granularity, "value", granularity)
            raise StatisticsError(f"granularity type not supported. ={shown}")

        stored = self._repo.stats(name, order_type, from_time, to_time, past, granularity)
        if not stored:
            return []

        if not backfill:
            return sorted((_from_stored(post) for post in stored), key=_sort_key)

        tick = GRANULARITY_TO_DURATION.get(Granularity(granularity))
        if not tick:
            raise StatisticsError(
                f"unknown conversion from granularity type to tick. ={int(granularity)}"
            )

        series: dict[str, dict[datetime, StoredPost]] = {}
        for post in stored:
            series.setdefault(post.data_ks_id, {})[post.polled_time_rounded_minute] = post
        all_times = sorted({post.polled_time_rounded_minute for post in stored})
        min_time, max_time = all_times[0], all_times[-1]

        posts: list[Post] = []
        for by_time in series.values():
            first = next(iter(by_time.values()))
            for needed in all_times:
                found = by_time.get(needed)
                if found is not None:
                    posts.append(_from_stored(found))
                    continue
                posts.append(
                    Post(
                        title=first.title,
                        perma_link_path=first.perma_link_path,
                        data_ks_id=first.data_ks_id,
                        subreddit_id=first.subreddit_id,
                        subreddit_name=first.subreddit_name,
                        author_id=first.author_id,
                        author_name=first.author_name,
                        polled_time=needed,
                        polled_time_rounded_minute=needed,
                        score=None,
                        comment_count=None,
                        rank_order_type=first.rank_order_type,
                        rank_order_for_created_within_past=first.rank_order_for_created_within_past,
                        rank=None,
                        is_synthetic=True,
                    )
                )

        known = set(all_times)
        moment = min_time
        while moment < max_time:
            if moment not in known:
                for ks_id, by_time in series.items():
                    first = next(iter(by_time.values()))
                    posts.append(
                        Post(
                            title=first.title,
                            perma_link_path=first.perma_link_path,
                            data_ks_id=ks_id,
                            subreddit_id="",
                            subreddit_name="",
                            author_id="",
                            author_name="",
                            polled_time=None,
                            polled_time_rounded_minute=moment,
                            score=None,
                            comment_count=None,
                            rank_order_type="",
                            rank_order_for_created_within_past="",
                            rank=None,
                            is_synthetic=True,
                        )
                    )
            moment += tick

        posts.sort(key=_sort_key)
        return posts