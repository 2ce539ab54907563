"""
app/config.py

Crawler configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

DEFAULT_BASE_URL = "https://www.whiskystats.com"
DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str, default: str | None = None) -> str | None:
    """
    Read an optional string; an explicitly empty value disables the setting.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class CrawlSettings:
    """
    Runtime settings for the catalog crawl.
    """

    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0
    rate_limit_enabled: bool = False
    min_request_interval_seconds: float = 2.0
    raw_data_dir: str | None = "./data/whisky"

    concurrency: int = 10
    batch_size: int = 100
    flush_interval_seconds: float = 10.0
    chunk_size: int = 10

    window_size: int = 3000
    min_consecutive_not_found: int = 3000
    min_not_found_rate: float = 0.95
    max_consecutive_errors: int = 50
    boundary_safety_limit: int = 10_000_000

    progress_interval: int = 100
    estimated_max_id: int = 291_265
    dead_letter_path: str | None = "./data/dead_letter/whiskies.jsonl"


@lru_cache(maxsize=1)
def get_crawl_settings() -> CrawlSettings:
    """
    Return cached crawl settings from environment variables.
    """

    window_size = max(1, _get_int_env("CRAWL_WINDOW_SIZE", 3000))
    return CrawlSettings(
        base_url=_get_str_env("CRAWL_BASE_URL", DEFAULT_BASE_URL),
        user_agent=_get_str_env("CRAWL_USER_AGENT", DEFAULT_USER_AGENT),
        timeout_seconds=max(1.0, _get_float_env("CRAWL_TIMEOUT_SECONDS", 30.0)),
        rate_limit_enabled=_get_bool_env("CRAWL_RATE_LIMIT_ENABLED", False),
        min_request_interval_seconds=max(
            0.0, _get_float_env("CRAWL_MIN_REQUEST_INTERVAL_SECONDS", 2.0)
        ),
        raw_data_dir=_get_optional_str_env("CRAWL_RAW_DATA_DIR", "./data/whisky"),
        concurrency=max(1, _get_int_env("CRAWL_CONCURRENCY", 10)),
        batch_size=max(1, _get_int_env("CRAWL_BATCH_SIZE", 100)),
        flush_interval_seconds=max(0.1, _get_float_env("CRAWL_FLUSH_INTERVAL_SECONDS", 10.0)),
        chunk_size=max(1, _get_int_env("CRAWL_CHUNK_SIZE", 10)),
        window_size=window_size,
        min_consecutive_not_found=min(
            window_size, max(1, _get_int_env("CRAWL_MIN_CONSECUTIVE_NOT_FOUND", 3000))
        ),
        min_not_found_rate=min(1.0, max(0.0, _get_float_env("CRAWL_MIN_NOT_FOUND_RATE", 0.95))),
        max_consecutive_errors=max(1, _get_int_env("CRAWL_MAX_CONSECUTIVE_ERRORS", 50)),
        boundary_safety_limit=max(1, _get_int_env("CRAWL_BOUNDARY_SAFETY_LIMIT", 10_000_000)),
        progress_interval=max(1, _get_int_env("CRAWL_PROGRESS_INTERVAL", 100)),
        estimated_max_id=max(1, _get_int_env("CRAWL_ESTIMATED_MAX_ID", 291_265)),
        dead_letter_path=_get_optional_str_env(
            "CRAWL_DEAD_LETTER_PATH", "./data/dead_letter/whiskies.jsonl"
        ),
    )
