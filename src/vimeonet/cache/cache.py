"""Two-layer response cache keyed by request cache key.

Raw response dictionaries are kept in process memory and, optionally,
persisted on disk with :mod:`diskcache`. Reads are served from memory
first; a disk hit is promoted back into memory. Both layers are safe to
use from many threads at once, which the request engine relies on since
concurrent requests may read and write the same key.

Only raw dictionaries are stored, never mapped models, so a cached entry
survives changes to the model classes. The engine removes an entry
whenever it can no longer be mapped.

See Also:
    :class:`~vimeonet.models.CacheConfig` -- selects the layers and TTL.
"""

from __future__ import annotations

import copy
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Mapping, Optional

import diskcache

from vimeonet.exceptions import CacheError
from vimeonet.models import CacheConfig

logger = logging.getLogger(__name__)


class ResponseCache:
    """Thread-safe memory + disk store for raw JSON responses.

    Args:
        config: Cache configuration (layers, TTL).
        cache_dir: Root directory for the disk layer. A ``responses/``
            subdirectory is created inside it. Ignored when the disk layer
            is disabled; required otherwise.

    Example::

        cache = ResponseCache(CacheConfig(disk=False))
        cache.set_response("videos-page-1", {"data": []})
        cache.response_for_key("videos-page-1")   # {"data": []}
    """

    def __init__(self, config: CacheConfig, cache_dir: str | Path | None = None) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._memory: dict[str, tuple[Optional[float], dict[str, Any]]] = {}
        self._disk: Optional[diskcache.Cache] = None
        self._cache_dir = Path(cache_dir) if cache_dir is not None else None

        if config.enabled and config.disk:
            if self._cache_dir is None:
                raise CacheError("A cache directory is required when the disk cache is enabled")
            try:
                self._disk = diskcache.Cache(str(self._cache_dir / "responses"))
            except (OSError, sqlite3.Error) as exc:
                raise CacheError(f"Cannot open response cache at {self._cache_dir}: {exc}") from exc

    @property
    def enabled(self) -> bool:
        return self._config.enabled and (self._config.memory or self._disk is not None)

    def response_for_key(self, key: str) -> Optional[dict[str, Any]]:
        """Return a copy of the stored response for *key*, or ``None`` on a miss.

        Raises:
            CacheError: If the disk layer cannot be read.
        """
        if not self.enabled:
            return None

        if self._config.memory:
            with self._lock:
                entry = self._memory.get(key)
                if entry is not None:
                    expires_at, value = entry
                    if expires_at is None or expires_at > time.monotonic():
                        return copy.deepcopy(value)
                    del self._memory[key]

        if self._disk is None:
            return None
        try:
            value = self._disk.get(key)
        except (OSError, sqlite3.Error) as exc:
            raise CacheError(f"Cannot read cached response '{key}': {exc}") from exc
        if value is None:
            return None

        if self._config.memory:
            self._remember(key, value)
        return copy.deepcopy(value)

    def set_response(self, key: str, response: Mapping[str, Any]) -> None:
        """Store *response* under *key*, overwriting any previous entry.

        Raises:
            CacheError: If the disk layer cannot be written.
        """
        if not self.enabled:
            return
        value = copy.deepcopy(dict(response))
        if self._config.memory:
            self._remember(key, value)
        if self._disk is not None:
            try:
                self._disk.set(key, value, expire=self._config.ttl_seconds)
            except (OSError, sqlite3.Error) as exc:
                raise CacheError(f"Cannot store cached response '{key}': {exc}") from exc
        logger.debug("Cached response for key %s", key)

    def remove_response(self, key: str) -> None:
        """Remove the entry for *key* from every layer. Missing keys are ignored."""
        with self._lock:
            self._memory.pop(key, None)
        if self._disk is not None:
            try:
                self._disk.delete(key)
            except (OSError, sqlite3.Error) as exc:
                raise CacheError(f"Cannot remove cached response '{key}': {exc}") from exc
        logger.debug("Removed cached response for key %s", key)

    def clear(self) -> None:
        """Remove all entries from every layer."""
        with self._lock:
            self._memory.clear()
        if self._disk is not None:
            try:
                self._disk.clear()
            except (OSError, sqlite3.Error) as exc:
                raise CacheError(f"Cannot clear response cache: {exc}") from exc

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            ``{"enabled": False}`` when caching is off, otherwise the entry
            counts per layer, the disk directory and the TTL.
        """
        if not self.enabled:
            return {"enabled": False}
        with self._lock:
            memory_size = len(self._memory)
        stats: dict[str, Any] = {
            "enabled": True,
            "memory_entries": memory_size,
            "ttl_seconds": self._config.ttl_seconds,
        }
        if self._disk is not None:
            stats["disk_entries"] = len(self._disk)
            stats["directory"] = str(self._disk.directory)
        return stats

    def close(self) -> None:
        """Close the disk layer and release its resources."""
        if self._disk is not None:
            self._disk.close()

    def _remember(self, key: str, value: dict[str, Any]) -> None:
        ttl = self._config.ttl_seconds
        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._memory[key] = (expires_at, value)
