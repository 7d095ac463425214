"""
Runtime configuration read from the environment (optionally via a .env file).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_DOTENV_LOADED = False


class ConfigError(Exception):
    """A required setting is missing or invalid."""


def load_env() -> None:
    """Load `.env` once; real environment variables take precedence."""
    global _DOTENV_LOADED
    if not _DOTENV_LOADED:
        load_dotenv(override=False)
        _DOTENV_LOADED = True


@dataclass(frozen=True)
class EnvVars:
    meilisearch_host: Optional[str]
    meilisearch_key: Optional[str]
    maps_dir: Optional[str]
    sentry_dsn: Optional[str]
    sentry_environment: Optional[str]


_ENV_NAMES = {
    "meilisearch_host": "MEILISEARCH_HOST",
    "meilisearch_key": "MEILISEARCH_KEY",
    "maps_dir": "MAPS_DIR",
    "sentry_dsn": "SENTRY_DSN",
    "sentry_environment": "SENTRY_ENV",
}


# PUBLIC_INTERFACE
def get_env_vars() -> EnvVars:
    """
    Collect application settings from the environment.

    Blank values are allowed but logged, since most of them only matter to
    one subsystem (search, error reporting, map file serving).
    """
    load_env()
    values = {}
    for f in fields(EnvVars):
        name = _ENV_NAMES[f.name]
        value = os.getenv(name) or None
        if value is None:
            logger.warning("%s has been left blank in .env -- intentional?", name)
        values[f.name] = value
    return EnvVars(**values)


def search_task_timeout_ms() -> int:
    try:
        return int(os.getenv("MEILISEARCH_TASK_TIMEOUT_MS", "60000"))
    except ValueError:
        return 60000
