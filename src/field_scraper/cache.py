"""Fingerprinted result cache with pluggable key-value backing stores."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from field_scraper.fields import normalize_fields
from field_scraper.models import FieldSpec, ScrapeResult

logger = logging.getLogger(__name__)

KEY_PREFIX = "scraper_result:"
DEFAULT_TTL = 3600
DEFAULT_CACHE_DIR = Path(".scraper_cache")


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: float) -> None: ...

    def delete(self, key: str) -> bool: ...


class MemoryCacheStore:
    """In-process store; entries expire ``ttl`` seconds after being set."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class FileCacheStore:
    """Stores each entry as a JSON file holding its expiry and value."""

    def __init__(self, cache_dir: Path | None = None, clock: Callable[[], float] = time.time) -> None:
        self._dir = cache_dir or DEFAULT_CACHE_DIR
        self._dir.mkdir(parents=True, exist_ok=True)
        self._clock = clock

    def _path(self, key: str) -> Path:
        return self._dir / f"{hashlib.sha256(key.encode()).hexdigest()[:32]}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
            expires_at = float(entry["expires_at"])
            value = entry["value"]
        except (json.JSONDecodeError, OSError, KeyError, TypeError, ValueError):
            return None
        if self._clock() >= expires_at:
            path.unlink(missing_ok=True)
            return None
        return value

    def set(self, key: str, value: str, ttl: float) -> None:
        entry = {"key": key, "expires_at": self._clock() + ttl, "value": value}
        self._path(key).write_text(json.dumps(entry, ensure_ascii=False), encoding="utf-8")
        logger.debug("Cached entry %s", key)

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def clear(self) -> None:
        """Remove all cached files."""
        for f in self._dir.glob("*.json"):
            f.unlink()
        logger.info("Cache cleared")


class FingerprintCache:
    """Caches scrape results under a digest of the URL and full field specs.

    Backing-store failures never propagate: a failed read is a miss and a
    failed write is dropped. Passing ``store=None`` disables caching.
    """

    def __init__(self, store: Optional[CacheStore], ttl: float = DEFAULT_TTL) -> None:
        self.store = store
        self.ttl = ttl

    @staticmethod
    def fingerprint(url: str, fields: Any) -> str:
        specs = [field.model_dump(mode="json") for field in normalize_fields(fields)]
        canonical = json.dumps(
            {"url": url, "fields": sorted(specs, key=lambda spec: json.dumps(spec, sort_keys=True))},
            sort_keys=True,
            separators=(",", ":"),
        )
        return KEY_PREFIX + hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def get(self, url: str, fields: Sequence[FieldSpec]) -> Optional[ScrapeResult]:
        if self.store is None:
            return None
        try:
            raw = self.store.get(self.fingerprint(url, fields))
            if raw is None:
                return None
            result = ScrapeResult.model_validate_json(raw)
        except Exception as exc:  # noqa: BLE001 - any store failure is a miss
            logger.warning("Cache read failed: %s", exc)
            return None
        return result.model_copy(update={"cached": True})

    def set(
        self,
        url: str,
        fields: Sequence[FieldSpec],
        result: ScrapeResult,
        ttl: Optional[float] = None,
    ) -> bool:
        if self.store is None:
            return False
        payload = result.model_copy(update={"cached": False}).model_dump_json()
        try:
            self.store.set(self.fingerprint(url, fields), payload, self.ttl if ttl is None else ttl)
        except Exception as exc:  # noqa: BLE001 - results are still returned uncached
            logger.warning("Cache write failed: %s", exc)
            return False
        return True

    def invalidate(self, url: str, fields: Sequence[FieldSpec]) -> bool:
        if self.store is None:
            return False
        try:
            return self.store.delete(self.fingerprint(url, fields))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache invalidation failed: %s", exc)
            return False


def build_store(backend: str, cache_dir: str | Path | None = None) -> Optional[CacheStore]:
    if backend == "none":
        return None
    if backend == "file":
        return FileCacheStore(Path(cache_dir) if cache_dir else None)
    if backend == "memory":
        return MemoryCacheStore()
    raise ValueError(f"Unknown cache backend '{backend}'")
