"""Chat bot that lists tasks, shows trending posts and delivers CSV reports."""

from __future__ import annotations

import argparse
import logging
import os
import time
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from dotenv import load_dotenv

from subminer import reddit_miner
from subminer.bot_clients import ClientError, StatsClient, TaskClient

logger = logging.getLogger(__name__)

API_ROOT = "https://api.telegram.org"

DEFAULT_COMMANDS = (
    ("start", "your journey begins here"),
    ("report", "download historical dataset over time"),
    ("now", "view current trending posts in subreddit"),
)

ORDERS = ("top",)
PASTS = ("day", "week", "month")
PAST_24_HOURS = "Past 24 Hours"
TIME_RANGES = (PAST_24_HOURS,)
REPORT_GRANULARITY = 3
MAX_LISTED_POSTS = 20
DEFAULT_REPORT_NAME = "output.csv"

Miner = Callable[[str, Any, Any], Iterable[reddit_miner.Post]]


class TelegramError(Exception):
    """Raised when the chat service rejects a request or cannot be reached."""


def keyboard(labels: Sequence[str], prefix: str) -> dict[str, Any]:
    """A one-row inline keyboard whose buttons carry ``<prefix>_<label>``."""
    return {
        "inline_keyboard": [
            [{"text": label, "callback_data": f"{prefix}_{label}"} for label in labels]
        ]
    }


class TelegramApi:
    """A minimal client of the bot HTTP API."""

    def __init__(self, token: str, client: httpx.Client | None = None) -> None:
        self._base = f"{API_ROOT}/bot{token}"
        self._client = client or httpx.Client(timeout=httpx.Timeout(90.0))

    @staticmethod
    def _result(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError as exc:
            raise TelegramError(f"invalid response with status {response.status_code}") from exc
        if not isinstance(body, dict) or not body.get("ok"):
            description = body.get("description") if isinstance(body, dict) else None
            raise TelegramError(description or f"request failed with status {response.status_code}")
        return body.get("result")

    def call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        """Invoke an API method with a JSON payload and return its result."""
        try:
            response = self._client.post(f"{self._base}/{method}", json=payload or {})
        except httpx.HTTPError as exc:
            raise TelegramError(str(exc)) from exc
        return self._result(response)

    def send_message(
        self,
        chat_id: int,
        text: str,
        parse_mode: str | None = None,
        reply_markup: dict[str, Any] | None = None,
        disable_preview: bool = False,
    ) -> Any:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if disable_preview:
            payload["disable_web_page_preview"] = True
        return self.call("sendMessage", payload)

    def send_document(self, chat_id: int, filename: str, data: bytes) -> Any:
        """Upload ``data`` as a file named ``filename``."""
        try:
            response = self._client.post(
                f"{self._base}/sendDocument",
                data={"chat_id": str(chat_id)},
                files={"document": (filename, data)},
            )
        except httpx.HTTPError as exc:
            raise TelegramError(str(exc)) from exc
        return self._result(response)

    def set_commands(self, commands: Iterable[tuple[str, str]]) -> Any:
        return self.call(
            "setMyCommands",
            {
                "commands": [
                    {"command": command, "description": description}
                    for command, description in commands
                ]
            },
        )

    def updates(self, offset: int = 0, timeout: int = 60) -> list[dict[str, Any]]:
        """Long-poll for updates starting at ``offset``."""
        result = self.call("getUpdates", {"offset": offset, "timeout": timeout})
        return [update for update in result or [] if isinstance(update, dict)]


def _command(message: dict[str, Any]) -> str:
    text = message.get("text") or ""
    entities = message.get("entities") or []
    if not entities:
        return ""
    first = entities[0]
    if first.get("type") != "bot_command" or first.get("offset") != 0:
        return ""
    return text[1 : first.get("length", 0)].split("@", 1)[0]


def _username(message: dict[str, Any]) -> str:
    chat = message.get("chat") or {}
    return chat.get("username") or ""


def _subreddit_header(name: str, order: str, past: str) -> str:
    return (
        f'SubReddit: <a href="https://reddit.com/{name}">r/{name}</a> '
        f"Order: {order} T: {past}"
    )


class Bot:
    """Answers commands and button presses of chat users."""

    def __init__(self, api: TelegramApi, server_address: str, miner: Miner | None = None) -> None:
        self.api = api
        self.server_address = server_address
        self.website = ""
        self._miner = miner or reddit_miner.subreddit_posts
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="bot-job")

    def process_update(self, update: dict[str, Any]) -> Future | None:
        """Handle one update; return the future of any work left running in the background."""
        try:
            if update.get("message"):
                self._on_message(update["message"])
            elif update.get("callback_query"):
                return self._on_callback(update["callback_query"])
        except Exception:
            logger.exception("handling update failed")
        return None

    def _send(self, chat_id: int, text: str, **options: Any) -> None:
        self.api.send_message(chat_id, text, **options)

    def _on_message(self, message: dict[str, Any]) -> None:
        chat_id = (message.get("chat") or {}).get("id")
        command = _command(message)
        if command == "":
            self._send(
                chat_id,
                f"Hello {_username(message)} 👋 Please use commands to chat with me~ "
                'Start your message with "/"',
            )
        elif command in ("start", "help"):
            self._send(chat_id, self._welcome(_username(message)), parse_mode="HTML")
        elif command == "report":
            self._list_for_report(chat_id)
        elif command.startswith("now"):
            self._list_for_now(chat_id)

    def _welcome(self, username: str) -> str:
        return (
            f"\nHello {username} 👋, Welcome to Reddit Miner.\n\n"
            f"Links:\nwebsite: {self.website}\n\n"
            "/report \tdownload historical dataset over time\n"
            "/now\t\tview current trending posts in subreddit\n"
        )

    def _tasks(self, chat_id: int):
        try:
            return TaskClient(self.server_address).get_list()
        except ClientError as exc:
            self._send(chat_id, f"Something went wrong.... {exc}")
            return None

    def _list_for_report(self, chat_id: int) -> None:
        tasks = self._tasks(chat_id)
        if tasks is None:
            return
        if not tasks:
            self._send(chat_id, f"No tasks found. Please visit {self.website} to create a task.")
            return
        names = sorted({task.subreddit_name for task in tasks})
        self._send(
            chat_id,
            "Which subreddit would you like to obtain the dataset?",
            reply_markup=keyboard(names, "report"),
        )

    def _list_for_now(self, chat_id: int) -> None:
        tasks = self._tasks(chat_id)
        if tasks is None:
            return
        names = [task.subreddit_name for task in tasks]
        self._send(
            chat_id,
            "Which subreddit would you like to query?",
            reply_markup=keyboard(names, "now"),
        )

    def _on_callback(self, callback: dict[str, Any]) -> Future | None:
        data = callback.get("data") or ""
        args = data.split("_")
        chat_id = ((callback.get("message") or {}).get("chat") or {}).get("id")
        if args[0] == "now":
            return self._now_step(chat_id, data, args)
        if args[0] == "report":
            return self._report_step(chat_id, data, args)
        return None

    def _now_step(self, chat_id: int, data: str, args: list[str]) -> Future | None:
        if len(args) == 2:
            self._send(chat_id, "Select Sort By:", reply_markup=keyboard(ORDERS, data))
        elif len(args) == 3:
            self._send(chat_id, "Select Post Created Time", reply_markup=keyboard(PASTS, data))
        elif len(args) == 4:
            _, name, order, past = args
            self._send(
                chat_id,
                f"{_subreddit_header(name, order, past)}\nWorking on it...",
                parse_mode="HTML",
                disable_preview=True,
            )
            return self._executor.submit(self._guarded, self._send_trending, chat_id, name, order, past)
        return None

    def _report_step(self, chat_id: int, data: str, args: list[str]) -> Future | None:
        if len(args) == 2:
            self._send(chat_id, "Select Sort By:", reply_markup=keyboard(ORDERS, data))
        elif len(args) == 3:
            self._send(chat_id, "Select Post Created Time:", reply_markup=keyboard(PASTS, data))
        elif len(args) == 4:
            self._send(chat_id, "Select Time Range:", reply_markup=keyboard(TIME_RANGES, data))
        elif len(args) == 5:
            _, name, order, past, time_range = args
            if time_range == PAST_24_HOURS:
                to_time = datetime.now(timezone.utc)
                from_time = to_time - timedelta(hours=24)
            else:
                from_time = to_time = datetime.min.replace(tzinfo=timezone.utc)
            self._send(
                chat_id,
                f"{_subreddit_header(name, order, past)} Time Range: Past 24 Hours\n"
                "Working on report...",
                parse_mode="HTML",
                disable_preview=True,
            )
            return self._executor.submit(
                self._guarded, self._send_report, chat_id, name, order, past, from_time, to_time
            )
        return None

    @staticmethod
    def _guarded(job: Callable[..., None], *args: Any) -> None:
        try:
            job(*args)
        except Exception:
            logger.exception("background job failed")

    def _send_trending(self, chat_id: int, name: str, order: str, past: str) -> None:
        posts = list(self._miner(name, past, order))
        logger.info("mined %d posts", len(posts))
        header = _subreddit_header(name, order, past)
        if not posts:
            self._send(
                chat_id,
                f"{header}\nResult: No Data...",
                parse_mode="HTML",
                disable_preview=True,
            )
            return
        ranked = sorted(posts, key=lambda post: post.rank)[:MAX_LISTED_POSTS]
        lines = "".join(
            f'\nRank {post.rank:02d}: <a href="https://reddit.com{post.perma_link_path}">'
            f"{post.title}</a> "
            for post in ranked
        )
        self._send(chat_id, header + lines, parse_mode="HTML")

    def _send_report(
        self,
        chat_id: int,
        name: str,
        order: str,
        past: str,
        from_time: datetime,
        to_time: datetime,
    ) -> None:
        client = StatsClient(self.server_address)
        try:
            body, filename = client.get_csv(
                name, order, past, REPORT_GRANULARITY, from_time, to_time
            )
        except ClientError as exc:
            self._send(chat_id, f"Something went wrong.... {exc}")
            return
        self.api.send_document(chat_id, filename or DEFAULT_REPORT_NAME, body)
        self._send(chat_id, "Report Download Success. Visit website for more options.")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the subreddit statistics chat bot.")
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    load_dotenv()
    token = os.getenv("TGBOT_TOKEN", "")
    server_address = os.getenv("API_SERVER_ADDRESS", "")
    if not server_address:
        logger.error("API_SERVER_ADDRESS environment variable not set")
        return 1

    api = TelegramApi(token)
    try:
        me = api.call("getMe") or {}
        logger.info("Authorized on account %s", me.get("username", ""))
        api.set_commands(DEFAULT_COMMANDS)
        pending = api.updates(-1, 0)
    except TelegramError as exc:
        logger.error("failed to start the bot: %s", exc)
        return 1

    bot = Bot(api, server_address)
    bot.website = os.getenv("WEBSITE_URL", "")
    # Skip whatever queued up while the bot was away.
    offset = pending[-1]["update_id"] + 1 if pending else 0
    try:
        while True:
            try:
                batch = api.updates(offset, 60)
            except TelegramError as exc:
                logger.warning("polling failed: %s", exc)
                time.sleep(1)
                continue
            for update in batch:
                offset = max(offset, update.get("update_id", 0) + 1)
                bot.process_update(update)
    except KeyboardInterrupt:
        logger.info("stopping bot")
    return 0