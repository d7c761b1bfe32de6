"""Fetch and parse the posts of a subreddit listing page."""

from __future__ import annotations

import argparse
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/114.0.0.0 Safari/537.36"
)


class CreatedWithinPast(str, Enum):
    HOUR = "hour"
    DAY = "day"
    MONTH = "month"
    WEEK = "week"
    YEAR = "year"

    def __str__(self) -> str:
        return self.value


class OrderByAlgo(str, Enum):
    TOP = "top"
    BEST = "best"
    HOT = "hot"
    NEW = "new"

    def __str__(self) -> str:
        return self.value


SUPPORTED_PAST = (CreatedWithinPast.DAY, CreatedWithinPast.MONTH, CreatedWithinPast.WEEK)

_INTEGER = re.compile(r"[+-]?[0-9]+")


@dataclass
class Post:
    """A post as it appears at one position of a listing."""

    title: str
    data_ks_id: str
    perma_link_path: str
    subreddit_id: str
    subreddit_prefixed_name: str
    author_id: str
    author_name: str
    created_timestamp: str
    score: int | None
    comment_count: int | None
    rank: int
    rank_order_type: OrderByAlgo | str
    rank_order_for_created_within_past: CreatedWithinPast | str


def _to_int(text: str) -> int | None:
    return int(text) if _INTEGER.fullmatch(text) else None


def _attr(element, name: str) -> str:
    if element is None:
        return ""
    value = element.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return value


def listing_url(subreddit: str, order_by: OrderByAlgo | str, created_within_past: CreatedWithinPast | str) -> str:
    return f"https://www.reddit.com/r/{subreddit}/{str(order_by)}?t={str(created_within_past)}"


def parse_posts(
    html: str,
    created_within_past: CreatedWithinPast | str,
    order_by: OrderByAlgo | str,
) -> list[Post]:
    """Extract every ``[data-ks-item]`` element of a listing page, ranked by position."""
    soup = BeautifulSoup(html, "html.parser")
    posts = []
    for index, element in enumerate(soup.select("[data-ks-item]")):
        posts.append(
            Post(
                title=_attr(element, "post-title"),
                data_ks_id=_attr(element.find("a"), "data-ks-id"),
                perma_link_path=_attr(element, "permalink"),
                subreddit_id=_attr(element, "subreddit-id"),
                subreddit_prefixed_name=_attr(element, "subreddit-prefixed-name"),
                author_id=_attr(element, "author-id"),
                author_name=_attr(element, "author"),
                created_timestamp=_attr(element, "created-timestamp"),
                score=_to_int(_attr(element, "score")),
                comment_count=_to_int(_attr(element, "comment-count")),
                rank=index + 1,
                rank_order_type=order_by,
                rank_order_for_created_within_past=created_within_past,
            )
        )
    return posts


def _fetch(client: httpx.Client, url: str) -> str:
    response = client.get(url, headers={"User-Agent": USER_AGENT}, follow_redirects=True)
    response.raise_for_status()
    return response.text


def subreddit_posts(
    subreddit: str,
    created_within_past: CreatedWithinPast | str,
    order_by: OrderByAlgo | str,
    client: httpx.Client | None = None,
) -> Iterator[Post]:
    """Yield the posts of a listing; yields nothing for unsupported input or fetch errors."""
    if created_within_past not in SUPPORTED_PAST:
        logger.warning("time frame not supported %s", created_within_past)
        return
    if not subreddit:
        logger.warning("subreddit name is empty")
        return
    if not order_by:
        logger.warning("order is empty")
        return

    url = listing_url(subreddit, order_by, created_within_past)
    logger.info("subreddit listing URL: %s", url)
    try:
        if client is None:
            with httpx.Client(timeout=30.0) as own_client:
                html = _fetch(own_client, url)
        else:
            html = _fetch(client, url)
    except httpx.HTTPError as exc:
        logger.warning("fetching %s failed: %s", url, exc)
        return

    yield from parse_posts(html, created_within_past, order_by)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Print the posts of a subreddit listing.")
    parser.add_argument("subreddit", nargs="?", default="memes")
    parser.add_argument(
        "--past",
        default=CreatedWithinPast.DAY.value,
        choices=[past.value for past in CreatedWithinPast],
    )
    parser.add_argument(
        "--order",
        default=OrderByAlgo.TOP.value,
        choices=[order.value for order in OrderByAlgo],
    )
    args = parser.parse_args(argv)

    posts = list(
        subreddit_posts(args.subreddit, CreatedWithinPast(args.past), OrderByAlgo(args.order))
    )
    print(f"len(posts): {len(posts)}")
    for post in posts:
        print(post)
    return 0