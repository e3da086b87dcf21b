"""Centralized configuration loaded from .env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

CACHE_BACKENDS = ("memory", "file", "none")


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    # HTTP fetch tuning
    timeout: float = 30.0
    max_retries: int = 3  # total attempts, including the first
    retry_base_delay: float = 1.0
    max_retry_delay: float = 30.0
    user_agent: str = "FieldScraper/1.0"
    max_redirects: int = 5
    max_content_bytes: int = 10 * 1024 * 1024

    # Result cache
    cache_backend: str = "memory"
    cache_dir: str = ".scraper_cache"
    cache_ttl: int = 3600

    @classmethod
    def from_env(cls) -> Settings:
        _load_env()
        backend = os.getenv("SCRAPER_CACHE_BACKEND", "memory").lower()
        if backend not in CACHE_BACKENDS:
            raise ValueError(
                f"SCRAPER_CACHE_BACKEND must be one of {', '.join(CACHE_BACKENDS)}, got {backend!r}"
            )
        return cls(
            timeout=_env_float("SCRAPER_TIMEOUT", 30.0),
            max_retries=_env_int("SCRAPER_MAX_RETRIES", 3),
            retry_base_delay=_env_float("SCRAPER_RETRY_DELAY", 1.0),
            max_retry_delay=_env_float("SCRAPER_MAX_RETRY_DELAY", 30.0),
            user_agent=os.getenv("SCRAPER_USER_AGENT", "FieldScraper/1.0"),
            max_redirects=_env_int("SCRAPER_MAX_REDIRECTS", 5),
            max_content_bytes=_env_int("SCRAPER_MAX_CONTENT_BYTES", 10 * 1024 * 1024),
            cache_backend=backend,
            cache_dir=os.getenv("SCRAPER_CACHE_DIR", ".scraper_cache"),
            cache_ttl=_env_int("SCRAPER_CACHE_TTL", 3600),
        )
