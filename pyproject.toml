[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "subminer"
version = "0.1.0"
description = "Track subreddit post rankings over time and serve them as JSON or CSV time series."
requires-python = ">=3.10"
keywords = ["reddit", "scraper", "statistics", "time-series", "csv", "telegram", "starlette"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
]
dependencies = [
    "starlette",
    "httpx",
    "beautifulsoup4",
    "python-dotenv",
]

[project.optional-dependencies]
test = [
    "pytest",
    "httpx",
    "respx",
]

[project.scripts]
subminer-bot = "subminer.bot:main"
subminer-scrape = "subminer.reddit_miner:main"

[tool.hatch.build.targets.wheel]
packages = ["subminer"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
