"""Configuration and logging setup.

Settings are read from environment variables, after loading a ``.env``
file from the working directory if one exists.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

_ENV_PREFIX = "COSTMATRIX_"


def _env(name: str, default: str) -> str:
    return os.environ.get(_ENV_PREFIX + name, default)


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        msg = f"{_ENV_PREFIX}{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None


def _env_bool(name: str, default: bool) -> bool:
    return _env(name, "true" if default else "false").strip().lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API and its store.

    ``database_url`` unset means an in-memory store, seeded with demo
    combinations when ``seed_demo`` is true.
    """

    database_url: str | None = None
    seed_demo: bool = True
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    default_page_size: int = 10
    max_page_size: int = 1000
    log_level: str = "INFO"
    db_echo: bool = False

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> Settings:
        """Load settings from the environment.

        Raises:
            ValueError: If a numeric variable is not an integer, or the
                page sizes are not positive.
        """
        if dotenv:
            load_dotenv()

        origins = [
            origin.strip()
            for origin in _env("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]
        settings = cls(
            database_url=_env("DATABASE_URL", "") or None,
            seed_demo=_env_bool("SEED_DEMO", True),
            cors_origins=origins,
            default_page_size=_env_int("DEFAULT_PAGE_SIZE", 10),
            max_page_size=_env_int("MAX_PAGE_SIZE", 1000),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
            db_echo=_env_bool("DB_ECHO", False),
        )
        if settings.default_page_size < 1 or settings.max_page_size < 1:
            msg = "Page sizes must be positive"
            raise ValueError(msg)
        return settings


def configure_logging(level: str = "INFO") -> None:
    """Send costmatrix logs to stderr at the given level."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
