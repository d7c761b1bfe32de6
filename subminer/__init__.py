"""Subreddit ranking tracker: listing scraper, SQLite storage, statistics handlers and Telegram bot."""

__version__ = "0.1.0"