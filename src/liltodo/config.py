"""
Settings for the command line.

Values come from environment variables, falling back to built-in defaults:

    LILTODO_DIR        storage root (default ~/.liltodo)
    LILTODO_LIMIT      default number of tasks listed; 0 or empty = no limit
    LILTODO_ORDER      default order expression, e.g. "-pri id"
    LILTODO_LOG_LEVEL  loguru level name (default WARNING)
    LILTODO_LOG_FILE   also write logs to this file
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from liltodo.errors import ConfigurationError

ENV_PREFIX = "LILTODO_"

DEFAULT_ROOT = "~/.liltodo"
DEFAULT_LIMIT = 10
DEFAULT_ORDER = "-pri"
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_PRIORITY = "5"
DEFAULT_DESCRIPTION = "No description"

_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    root: Path
    limit: int | None = DEFAULT_LIMIT
    order: str = DEFAULT_ORDER
    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ

        root = Path(env.get(f"{ENV_PREFIX}DIR") or DEFAULT_ROOT).expanduser()

        raw_limit = env.get(f"{ENV_PREFIX}LIMIT", str(DEFAULT_LIMIT)).strip()
        try:
            limit = int(raw_limit) if raw_limit else 0
        except ValueError:
            raise ConfigurationError(f"{ENV_PREFIX}LIMIT must be an integer, got '{raw_limit}'") from None
        if limit < 0:
            raise ConfigurationError(f"{ENV_PREFIX}LIMIT must not be negative, got {limit}")

        log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ConfigurationError(f"{ENV_PREFIX}LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")

        return cls(
            root=root,
            limit=limit or None,
            order=env.get(f"{ENV_PREFIX}ORDER", DEFAULT_ORDER),
            log_level=log_level,
            log_file=env.get(f"{ENV_PREFIX}LOG_FILE") or None,
        )
