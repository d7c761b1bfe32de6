"""Environment-driven server configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded."""


@dataclass(frozen=True)
class Config:
    """Settings for the HTTP server and its database."""

    port: str = ""
    allowed_origins: tuple[str, ...] = field(default_factory=tuple)
    database_url: str = ""


def load_config(env_file: str | os.PathLike[str] = ".env") -> Config:
    """Load settings from an env file (unless optional) and the environment.

    Variables already present in the environment take precedence over the file.
    """
    path = Path(env_file)
    loaded = path.is_file()
    if loaded:
        load_dotenv(path, override=False)

    optional = os.getenv("OPTIONAL_LOAD_ENV_FILE", "")
    if optional != "TRUE" and not loaded:
        raise ConfigError(
            "error. loading .env file is set as compulsory. "
            f"OPTIONAL_LOAD_ENV_FILE={optional}."
        )

    return Config(
        port=os.getenv("LISTENING_PORT", ""),
        allowed_origins=tuple(os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")),
        database_url=os.getenv("DATABASE_URL", ""),
    )