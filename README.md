# subminer

subminer follows how posts rank in chosen subreddits over time. It has these parts:

- a scraper that reads a subreddit listing page and turns it into ranked posts
- SQLite-backed storage for scraping *tasks* and for post statistics
- a statistics service that stores listing snapshots and returns them as a time series, with optional backfill of missing hours
- Starlette request handlers that serve tasks and statistics as JSON or CSV
- a Telegram bot that shows current top posts and downloads CSV reports from a statistics server

## Installation

```
pip install .
```

To include the test tools:

```
pip install ".[test]"
```

## Commands

### `subminer-scrape`

```
subminer-scrape [SUBREDDIT] [--past {hour,day,month,week,year}] [--order {top,best,hot,new}]
```

The command fetches one listing page and prints the number of posts, then each post. The defaults are `memes`, `day` and `top`. Only the `day`, `week` and `month` windows are scraped. Any other window prints `len(posts): 0`.

The page is fetched as plain HTML over HTTP and no script on it is run. Only the `[data-ks-item]` elements present in that HTML are found.

### `subminer-bot`

```
subminer-bot
```

The bot reads `TGBOT_TOKEN`, `API_SERVER_ADDRESS` and `WEBSITE_URL` from the environment or from a `.env` file if one is present. It exits with status 1 in two cases: when `API_SERVER_ADDRESS` is not set, and when it cannot reach Telegram at startup. At startup it registers its commands and skips the updates that queued up while it was offline. It then long-polls for new updates.

- `/start` or `/help`: a greeting with the website link and the list of commands
- `/now`: choose a subreddit from the server's task list, then the sort order and the creation window. The bot scrapes the listing and replies with up to 20 posts in rank order.
- `/report`: choose a subreddit, sort order, creation window and "Past 24 Hours". The bot downloads a CSV of hourly statistics from `API_SERVER_ADDRESS` and sends it as a document.

## Library use

### Scraping

```python
from subminer.reddit_miner import CreatedWithinPast, OrderByAlgo, subreddit_posts

for post in subreddit_posts("memes", CreatedWithinPast.DAY, OrderByAlgo.TOP):
    print(post.rank, post.title, post.score)
```

- `listing_url` builds the page address.
- `parse_posts(html, past, order)` parses a page you already have.
- A failed fetch yields no posts. It does not raise.

### Storage and services

Both repositories take a `sqlite3` connection and create their table with `ensure_schema()`:

```python
import sqlite3

from subminer.statistics_repo import Granularity, StatisticsRepo
from subminer.statistics_service import StatisticsService
from subminer.task_repo import TaskRepo
from subminer.task_service import TaskService

conn = sqlite3.connect("subminer.db", check_same_thread=False)
task_repo, stats_repo = TaskRepo(conn), StatisticsRepo(conn)
task_repo.ensure_schema()
stats_repo.ensure_schema()

tasks = TaskService(task_repo)
tasks.create("memes", 20, "hour", "top", "day")

stats = StatisticsService(stats_repo)
stats.scrape("memes", "day", "top")
series = stats.stats("memes", "top", "day", Granularity.HOUR, backfill=True)
```

`TaskService.create` raises `InvalidTaskError` in two cases: when any field is empty or the count is not positive, and when the interval is not `hour`.

`StatisticsService.stats` accepts only the following and raises `StatisticsError` otherwise:

- the order `top`
- the windows `day`, `week` and `month`
- a non-empty name
- `Granularity.HOUR`

It returns only ranks up to 20 and only polls taken on the hour, sorted by time and then by rank. With `backfill=True` it adds synthetic points (`is_synthetic=True`) in two cases:

- for posts that are missing at some poll time
- for whole hours with no polls between the first and the last

### HTTP handlers

`StatisticsHandlers.get` serves `/statistics`. Its query parameters are:

- `subreddit_name`
- `rank_order_type`
- `rank_order_created_within_past`
- `granularity`, where `3` means hourly
- `from_time` and `to_time`, in the form `YYYY-MM-DDTHH:MM:SS.mmmZ`
- `backfill`, where `true` turns backfill on

The `Accept` header must be `application/json` or `text/csv`. Any other value returns 415. Bad parameters return 400. JSON responses look like `{"data": {"posts": [...]}, "error": null}`. CSV responses are attachments named after the query.

`TaskHandlers` has three methods:

- `create` takes a JSON body with `subreddit_name`, `min_item_count`, `interval`, `order_by` and `posts_created_within_past`.
- `delete` takes `{"id": ...}`.
- `list` returns `{"data": {"tasks": [...]}, "error": null}`.

Mount them in a Starlette application:

```python
from starlette.applications import Starlette
from starlette.routing import Route

from subminer.statistics_api import StatisticsHandlers
from subminer.task_api import TaskHandlers

task_handlers = TaskHandlers(tasks)
app = Starlette(routes=[
    Route("/task", task_handlers.create, methods=["POST"]),
    Route("/task", task_handlers.delete, methods=["DELETE"]),
    Route("/tasks", task_handlers.list, methods=["GET"]),
    Route("/statistics", StatisticsHandlers(stats).get, methods=["GET"]),
])
```

Serve `app` with any ASGI server.

### Configuration

`subminer.config.load_config(".env")` returns a `Config` with `port`, `allowed_origins` and `database_url`. These come from `LISTENING_PORT`, `CORS_ALLOWED_ORIGINS` (comma-separated) and `DATABASE_URL`. It raises `ConfigError` when the env file is missing, unless `OPTIONAL_LOAD_ENV_FILE=TRUE` is set.

## What the package does not do

- It has no ready-made server command. It also has no `/ping` route, no CORS setup and no API docs page. You assemble the application from the handlers yourself, as shown above.
- It has no built-in scheduler. To collect statistics over time, call `StatisticsService.scrape` for each entry of `TaskService.tasks_by_interval("hour")` from your own timer or cron job.
- Storage is SQLite through `sqlite3` connections only.