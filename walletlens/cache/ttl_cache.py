"""Content-addressed TTL cache; entries expire after their TTL.

The cache is never an authority: unreadable, corrupt or expired entries are
reported as misses and the caller fetches again.
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Callable

from ..interfaces.cache_backend import CacheBackend
from ..models import CacheEntry

logger = logging.getLogger(__name__)

DEFAULT_TTL = 3600.0


def make_cache_key(kind: str, **params: Any) -> str:
    """Canonical identity string for a query.

    ``None`` parameters are dropped so optional arguments that were not set do
    not change the identity. Callers leave out parameters that only affect
    freshness (such as a force-refresh flag).
    """
    identity = {k: v for k, v in params.items() if v is not None}
    return kind + ":" + json.dumps(identity, sort_keys=True, default=str, separators=(",", ":"))


class TTLCache:
    """``get``/``set`` keyed by a logical request identity."""

    def __init__(
        self,
        backend: CacheBackend,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._default_ttl = default_ttl
        self._clock = clock

    @staticmethod
    def entry_name(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest() + ".json"

    @staticmethod
    def _decode(payload: bytes) -> CacheEntry:
        raw = json.loads(payload.decode("utf-8"))
        return CacheEntry(
            data=raw["data"],
            stored_at=float(raw["storedAt"]),
            ttl=float(raw["ttl"]),
            source_key=str(raw.get("sourceKey", "")),
        )

    def get(self, key: str) -> Any | None:
        """Return cached data, or ``None`` on a miss, expiry or unreadable entry."""
        name = self.entry_name(key)
        try:
            payload = self._backend.read(name)
        except OSError as e:
            logger.error("Cache read error for %s: %s", key, e)
            return None

        if payload is None:
            logger.debug("Cache MISS - %s", key)
            return None

        try:
            entry = self._decode(payload)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding corrupt cache entry %s: %s", name, e)
            self._discard(name)
            return None

        now = self._clock()
        if entry.is_fresh(now):
            logger.debug(
                "Cache HIT - age %.0fs / ttl %.0fs - %s", entry.age(now), entry.ttl, key
            )
            return entry.data

        logger.debug(
            "Cache EXPIRED - age %.0fs / ttl %.0fs - %s", entry.age(now), entry.ttl, key
        )
        self._discard(name)
        return None

    def set(self, key: str, data: Any, ttl: float | None = None) -> bool:
        """Store ``data`` under ``key``; returns False if the write failed."""
        ttl = self._default_ttl if ttl is None else ttl
        entry = {
            "data": data,
            "storedAt": self._clock(),
            "ttl": ttl,
            "sourceKey": key,
        }
        try:
            payload = json.dumps(entry, default=str).encode("utf-8")
            self._backend.write(self.entry_name(key), payload)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Cache write error for %s: %s", key, e)
            return False
        logger.info("Cache STORED - ttl %.0fs - %s", ttl, key)
        return True

    def sweep(self) -> int:
        """Delete every expired or unreadable entry; returns how many were removed."""
        now = self._clock()
        removed = 0
        try:
            names = self._backend.names()
        except OSError as e:
            logger.error("Cache sweep failed to list entries: %s", e)
            return 0

        for name in names:
            try:
                payload = self._backend.read(name)
                if payload is None:
                    continue
                if self._decode(payload).is_fresh(now):
                    continue
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.debug("Sweeping unreadable cache entry %s: %s", name, e)
            self._discard(name)
            removed += 1

        if removed:
            logger.info("Cleaned up %d expired cache entries", removed)
        return removed

    def clear(self) -> int:
        """Delete every entry."""
        names = self._backend.names()
        for name in names:
            self._discard(name)
        logger.info("Cleared %d cache entries", len(names))
        return len(names)

    def _discard(self, name: str) -> None:
        try:
            self._backend.delete(name)
        except OSError as e:
            logger.error("Cache delete error for %s: %s", name, e)
